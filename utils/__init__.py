"""Shared utilities for the governorate console.

Everything here is independent of FastAPI and Firebase: the collection
catalog, list filtering, status history, configuration, caching and
display formatting.
"""

# Pattern definitions
from utils.patterns import ARABIC_MARKS, ISO_DATE, REGION_CODE, WHITESPACE

# String utilities
from utils.strings import fold_text, normalize_whitespace, parse_iso_date

# Collection catalog
from utils.catalog import (
    COLLECTIONS,
    SYSTEM_FIELDS,
    CollectionSpec,
    FieldSpec,
    RecordValidationError,
    get_collection,
)

# List filtering
from utils.filters import ListFilters, filter_records, matches

# Status history
from utils.status import (
    DEFAULT_STATUS,
    STATUS_LABELS,
    STATUSES,
    apply_status_change,
    make_history_entry,
    validate_status,
)

# Output formatting
from utils.formatting import export_cell, format_status, format_timestamp

# Configuration
from utils.config import AppConfig, get_config, parse_regions, set_config

# Caching
from utils.cache import TTLCache

__all__ = [
    # Patterns
    "ARABIC_MARKS",
    "ISO_DATE",
    "REGION_CODE",
    "WHITESPACE",
    # Strings
    "fold_text",
    "normalize_whitespace",
    "parse_iso_date",
    # Catalog
    "COLLECTIONS",
    "SYSTEM_FIELDS",
    "CollectionSpec",
    "FieldSpec",
    "RecordValidationError",
    "get_collection",
    # Filters
    "ListFilters",
    "filter_records",
    "matches",
    # Status
    "DEFAULT_STATUS",
    "STATUS_LABELS",
    "STATUSES",
    "apply_status_change",
    "make_history_entry",
    "validate_status",
    # Formatting
    "export_cell",
    "format_status",
    "format_timestamp",
    # Config
    "AppConfig",
    "get_config",
    "parse_regions",
    "set_config",
    # Cache
    "TTLCache",
]
