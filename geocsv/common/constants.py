"""Application constants."""

USER_AGENT = "geocsv/1.0 (+batch geocoding; contact: configured-email)"
STAGES = (
    "geocode",
    "to-geojson",
)
EXIT_SUCCESS = 0
EXIT_PARTIAL = 10
EXIT_HARD_FAIL = 20
FAILURE_POLICIES = ("fatal", "continue")
MISSING_COORDINATE_POLICIES = ("skip", "fail", "null")
LAT_FIELD = "lat"
LON_FIELD = "lon"
CREDENTIAL_PARAMS = ("apiKey",)
REDACTED = "***"
JSON_LOG_FIELDS = (
    "timestamp",
    "run_id",
    "stage",
    "event",
    "status",
    "row_index",
    "duration_ms",
    "rows_in",
    "rows_out",
    "error_code",
    "url",
    "message",
)
