"""
housedata_shared — configuration, models, and constants for the housedata pipeline.

Usage:
    from housedata_shared.config import settings
    from housedata_shared.db import get_supabase_client
    from housedata_shared.models import Observation, MergedRecord, RunStats
    from housedata_shared.constants import SOURCES
    from housedata_shared.errors import MalformedTableError, LoadError
"""

__version__ = "0.1.0"
