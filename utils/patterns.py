"""Pre-compiled regex patterns for the governorate console.

All patterns are compiled once at module import so the per-request
filtering and form validation code does not recompile them.

Usage:
    from utils.patterns import ISO_DATE, WHITESPACE

    if ISO_DATE.match(value):
        ...
"""

import re

# Whitespace normalization: multiple spaces/tabs/newlines
WHITESPACE = re.compile(r'\s+')

# Calendar date as submitted by <input type="date">: 2024-03-31
ISO_DATE = re.compile(r'^\d{4}-\d{2}-\d{2}$')

# Region codes accepted in APP_REGIONS: lowercase letters, digits, _ and -
REGION_CODE = re.compile(r'^[a-z0-9_-]+$')

# Arabic diacritics (tashkeel) and tatweel, stripped before text comparison
ARABIC_MARKS = re.compile(r'[\u064B-\u0652\u0640]')
