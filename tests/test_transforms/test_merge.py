"""
tests/test_transforms/test_merge.py — Tests for stream merging and dimension extraction.
"""

from __future__ import annotations

from datetime import date

import pytest

from housedata_shared.errors import MergeConflictError
from housedata_shared.models import Observation
from housedata_pipeline.transforms.merge import MetricStream, extract_dimensions, merge_streams

DEC = date(2023, 12, 31)
JAN = date(2024, 1, 31)


def _obs(region: str, period: date, metric: str, value: float, **attributes) -> Observation:
    return Observation(
        region_key=region,
        period=period,
        metric=metric,
        value=value,
        attributes=attributes,
    )


@pytest.fixture
def inventory() -> MetricStream:
    return MetricStream("inventory_zip", "inventory", [
        _obs("32937", DEC, "inventory", 45),
        _obs("32937", JAN, "inventory", 52),
        _obs("10001", DEC, "inventory", 310),
    ])


@pytest.fixture
def sales() -> MetricStream:
    return MetricStream("sales_zip", "sales", [
        _obs("32937", DEC, "sales", 12),
        _obs("32937", JAN, "sales", 15),
        _obs("10001", JAN, "sales", 38),
    ])


class TestMergeStreams:
    def test_disjoint_metrics_fold_into_one_record(self, inventory, sales):
        result = merge_streams([inventory, sales])

        assert result.conflicts == []
        by_key = {r.key: r.metrics for r in result.records}
        assert by_key[("32937", DEC)] == {"inventory": 45, "sales": 12}
        assert by_key[("32937", JAN)] == {"inventory": 52, "sales": 15}
        assert by_key[("10001", DEC)] == {"inventory": 310}
        assert by_key[("10001", JAN)] == {"sales": 38}

    def test_records_sorted_by_key(self, inventory, sales):
        keys = [r.key for r in merge_streams([sales, inventory]).records]
        assert keys == sorted(keys)

    def test_order_independent(self, inventory, sales):
        forward = merge_streams([inventory, sales])
        backward = merge_streams([sales, inventory])
        assert forward.records == backward.records

    def test_empty_input(self):
        result = merge_streams([])
        assert result.records == []
        assert result.conflicts == []

    def test_conflict_reported_and_cell_dropped(self, inventory):
        other = MetricStream("inventory_zip_v2", "inventory", [
            _obs("32937", DEC, "inventory", 47),
        ])
        result = merge_streams([inventory, other])

        assert len(result.conflicts) == 1
        conflict = result.conflicts[0]
        assert conflict.region_key == "32937"
        assert conflict.period == DEC
        assert conflict.metric == "inventory"
        assert conflict.streams == ("inventory_zip", "inventory_zip_v2")

        keys = {r.key for r in result.records}
        # No other metric for that key, so the record disappears entirely
        assert ("32937", DEC) not in keys
        assert ("32937", JAN) in keys

    def test_conflict_keeps_other_metrics(self, inventory, sales):
        other = MetricStream("inventory_zip_v2", "inventory", [
            _obs("32937", DEC, "inventory", 47),
        ])
        result = merge_streams([inventory, sales, other])
        by_key = {r.key: r.metrics for r in result.records}
        assert by_key[("32937", DEC)] == {"sales": 12}

    def test_conflict_result_order_independent(self, inventory, sales):
        other = MetricStream("inventory_zip_v2", "inventory", [
            _obs("32937", DEC, "inventory", 47),
        ])
        a = merge_streams([inventory, sales, other])
        b = merge_streams([other, sales, inventory])
        assert a.records == b.records
        assert [(c.region_key, c.period, c.metric) for c in a.conflicts] == [
            (c.region_key, c.period, c.metric) for c in b.conflicts
        ]
        assert set(a.conflicts[0].streams) == set(b.conflicts[0].streams)

    def test_duplicate_within_one_stream(self):
        stream = MetricStream("sales_zip", "sales", [
            _obs("32937", DEC, "sales", 12),
            _obs("32937", DEC, "sales", 13),
        ])
        result = merge_streams([stream])
        assert result.records == []
        assert result.conflicts[0].streams == ("sales_zip", "sales_zip")

    def test_third_writer_appended(self, inventory):
        two = MetricStream("b", "inventory", [_obs("32937", DEC, "inventory", 1)])
        three = MetricStream("c", "inventory", [_obs("32937", DEC, "inventory", 2)])
        result = merge_streams([inventory, two, three])
        assert len(result.conflicts) == 1
        assert result.conflicts[0].streams == ("inventory_zip", "b", "c")

    def test_strict_raises(self, inventory):
        other = MetricStream("inventory_zip_v2", "inventory", [
            _obs("32937", DEC, "inventory", 47),
        ])
        with pytest.raises(MergeConflictError, match="inventory"):
            merge_streams([inventory, other], strict=True)

    def test_merged_insert_dict_fills_missing_metrics(self, inventory, sales):
        result = merge_streams([inventory, sales])
        record = next(r for r in result.records if r.key == ("10001", JAN))
        row = record.to_insert_dict(metric_fields=["inventory", "sales", "dom"])
        assert row == {
            "zip": "10001",
            "date": "2024-01-31",
            "inventory": None,
            "sales": 38,
            "dom": None,
        }


class TestExtractDimensions:
    def test_first_writer_wins(self):
        zhvi = [_obs("32937", DEC, "value", 1, city="Satellite Beach", state="FL",
                     county="Brevard County", metro="Palm Bay")]
        zori = [_obs("32937", DEC, "rent", 1, city="Indialantic", state="FL",
                     county="Brevard County", metro="Palm Bay")]

        dims = extract_dimensions([zhvi, zori])
        assert len(dims) == 1
        assert dims[0].city == "Satellite Beach"

        dims = extract_dimensions([zori, zhvi])
        assert dims[0].city == "Indialantic"

    def test_later_stream_fills_nulls(self):
        zhvi = [_obs("10001", DEC, "value", 1, city="New York", state="NY",
                     county="New York County", metro=None)]
        zori = [_obs("10001", DEC, "rent", 1, city="Manhattan", state="NY",
                     county="New York County", metro="New York-Newark")]

        dim = extract_dimensions([zhvi, zori])[0]
        assert dim.city == "New York"
        assert dim.metro == "New York-Newark"
        assert dim.is_complete

    def test_one_record_per_region_sorted(self):
        stream = [
            _obs("32937", DEC, "value", 1, city="Satellite Beach"),
            _obs("32937", JAN, "value", 1, city="Satellite Beach"),
            _obs("10001", DEC, "value", 1, city="New York"),
        ]
        dims = extract_dimensions([stream])
        assert [d.region_key for d in dims] == ["10001", "32937"]

    def test_region_without_attributes_skipped(self):
        stream = [_obs("32937", DEC, "value", 1)]
        assert extract_dimensions([stream]) == []

    def test_insert_dict(self):
        stream = [_obs("32937", DEC, "value", 1, city="Satellite Beach", state="FL")]
        row = extract_dimensions([stream])[0].to_insert_dict()
        assert row == {
            "zip": "32937",
            "city": "Satellite Beach",
            "county": None,
            "state": "FL",
            "metro": None,
        }
