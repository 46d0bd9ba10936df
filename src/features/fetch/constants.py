"""HTTP constants for the listing fetch layer."""

HTTP_STATUS_OK_MIN = 200
HTTP_STATUS_OK_MAX = 300
HTTP_STATUS_BAD_REQUEST = 400
HTTP_STATUS_TOO_MANY_REQUESTS = 429
HTTP_STATUS_SERVER_ERROR_MIN = 500
HTTP_STATUS_SERVER_ERROR_MAX = 600

# A 1000-item listing page is about 1.5 MB of JSON
DEFAULT_MAX_RESPONSE_SIZE_BYTES = 20 * 1024 * 1024

DEFAULT_CHUNK_SIZE = 8192

# Longest Retry-After we honor, in seconds
MAX_RETRY_AFTER_SECONDS = 60
