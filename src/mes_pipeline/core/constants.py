"""
Pipeline-wide constants.

This module collects the values that must stay stable across releases
because previously imported data depends on them:

- Fallback store keys (same names as the browser dashboard's localStorage keys)
- Fallback blob size cap
- Placeholder values used when a field cannot be recovered
- Reference pass rate used for the KPI trend classification

If any key changes, data written by older versions becomes invisible.
"""

# Result values of a canonical record
RESULT_PASS = "PASS"
RESULT_FAIL = "FAIL"

# Item result used when an uploaded item carries no result at all
RESULT_UNKNOWN = "UNKNOWN"

# Placeholder for fields that cannot be recovered from a document or filename
UNKNOWN = "Unknown"

# Name given to test items that have no name (failure-reason tally)
UNKNOWN_TEST_NAME = "Unknown Test"

# Fallback store keys
FALLBACK_RECORDS_KEY = "mesTestData"
FALLBACK_MAPPINGS_KEY = "mesLogMappings"
FALLBACK_LOG_PREFIX = "log_backup_"
STATIONS_KEY = "mesStations"
MODELS_KEY = "mesModels"

# Vocabulary keys survive a clear-all
PRESERVED_KEYS = (STATIONS_KEY, MODELS_KEY)

# Maximum length (characters) of a single fallback blob: 1 MiB
FALLBACK_MAX_BLOB_CHARS = 1024 * 1024

# KPI trend reference: pass rate above this is "up", below is "down"
REFERENCE_PASS_RATE = 0.0

# Share of a day's failures counted as retests in the daily series
DAILY_RETEST_RATIO = 0.3

# Default window (days) of the dashboard when no date filter is set
DEFAULT_WINDOW_DAYS = 7
