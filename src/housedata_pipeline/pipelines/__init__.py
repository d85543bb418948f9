"""
housedata_pipeline.pipelines — End-to-end pipeline orchestrators.

Each pipeline module exports a run() async function returning a
PipelineResult (final RunStats plus per-table LoadResults).

    from housedata_pipeline.pipelines import zillow

    result = await zillow.run(sources=["zhvi_zip"], dry_run=True)
"""
