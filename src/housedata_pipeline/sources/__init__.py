"""
housedata_pipeline.sources — panel retrieval adapters.

  PanelSource  — abstract base; fetch() translates failures to RetrievalError
  ZillowSource — Zillow Research public CSVs over HTTP
"""

from housedata_pipeline.sources.base import PanelSource
from housedata_pipeline.sources.zillow import ZillowSource

__all__ = ["PanelSource", "ZillowSource"]
