"""
constants.py — Source registry and table identities.

Every Zillow Research panel the pipeline knows about is declared here,
together with the table it loads into and the columns that make a row
unique for upsert.
"""

from __future__ import annotations

from typing import Final

from housedata_shared.models.sources import SourceSpec

# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------
MARKET_METRICS_TABLE: Final[str] = "market_metrics"
ZIP_CODES_TABLE: Final[str] = "zip_codes"

ZIP_CONFLICT_COLUMNS: Final[tuple[str, ...]] = ("zip", "date")
REGION_CONFLICT_COLUMNS: Final[tuple[str, ...]] = ("region_id", "date")
DIMENSION_CONFLICT_COLUMNS: Final[tuple[str, ...]] = ("zip",)

# ---------------------------------------------------------------------------
# Panel column -> record field for descriptive attributes
# ---------------------------------------------------------------------------
ZIP_ATTRIBUTE_COLUMNS: Final[dict[str, str]] = {
    "City": "city",
    "CountyName": "county",
    "State": "state",
    "Metro": "metro",
}

# City/county panels are keyed by Zillow's RegionID; RegionName is the label
REGION_ATTRIBUTE_COLUMNS: Final[dict[str, str]] = {
    "RegionName": "region_name",
    "State": "state",
    "Metro": "metro",
}

# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------
_ZIP_VALUE = dict(
    kind="value",
    attribute_columns=ZIP_ATTRIBUTE_COLUMNS,
    dimension_table=ZIP_CODES_TABLE,
)
_REGION_VALUE = dict(
    kind="value",
    identity_column="RegionID",
    region_field="region_id",
    conflict_columns=REGION_CONFLICT_COLUMNS,
    attribute_columns=REGION_ATTRIBUTE_COLUMNS,
)
_ZIP_METRIC = dict(kind="metric", table=MARKET_METRICS_TABLE)

SOURCES: Final[dict[str, SourceSpec]] = {
    spec.key: spec
    for spec in (
        SourceSpec(
            key="zhvi_zip",
            name="ZHVI ZIP",
            path="zhvi/Zip_zhvi_uc_sfrcondo_tier_0.33_0.67_sm_sa_month.csv",
            table="zhvi_monthly",
            **_ZIP_VALUE,
        ),
        SourceSpec(
            key="zhvi_city",
            name="ZHVI City",
            path="zhvi/City_zhvi_uc_sfrcondo_tier_0.33_0.67_sm_sa_month.csv",
            table="zhvi_monthly_city",
            **_REGION_VALUE,
        ),
        SourceSpec(
            key="zhvi_county",
            name="ZHVI County",
            path="zhvi/County_zhvi_uc_sfrcondo_tier_0.33_0.67_sm_sa_month.csv",
            table="zhvi_monthly_county",
            **_REGION_VALUE,
        ),
        SourceSpec(
            key="zori_zip",
            name="ZORI ZIP",
            path="zori/Zip_zori_sm_month.csv",
            table="zori_monthly",
            field="rent",
            **_ZIP_VALUE,
        ),
        SourceSpec(
            key="zori_city",
            name="ZORI City",
            path="zori/City_zori_sm_month.csv",
            table="zori_monthly_city",
            field="rent",
            **_REGION_VALUE,
        ),
        SourceSpec(
            key="inventory_zip",
            name="Inventory ZIP",
            path="invt_fs/Zip_invt_fs_uc_sfrcondo_sm_month.csv",
            field="inventory",
            **_ZIP_METRIC,
        ),
        SourceSpec(
            key="sales_zip",
            name="Sales ZIP",
            path="sales/Zip_sales_count_now_uc_sfrcondo_month.csv",
            field="sales",
            **_ZIP_METRIC,
        ),
        SourceSpec(
            key="price_cuts_zip",
            name="Price Cuts ZIP",
            path="pct_reduced/Zip_pct_reduced_uc_sfrcondo_month.csv",
            field="price_cuts_pct",
            numeric_domain="float",
            **_ZIP_METRIC,
        ),
        SourceSpec(
            key="dom_zip",
            name="Days on Market ZIP",
            path="median_dom/Zip_median_dom_uc_sfrcondo_month.csv",
            field="dom",
            **_ZIP_METRIC,
        ),
        SourceSpec(
            key="sale_to_list_zip",
            name="Sale-to-List ZIP",
            path="median_sale_to_list/Zip_median_sale_to_list_uc_sfrcondo_month.csv",
            field="sale_to_list_ratio",
            numeric_domain="float",
            **_ZIP_METRIC,
        ),
    )
}
