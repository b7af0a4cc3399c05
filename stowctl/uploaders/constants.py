"""Shared constants for the upload engine.

The chunk defaults are conservative. Fast, stable links reach the 32 MiB
ceiling after a handful of chunks anyway, so raising the base size mostly
helps very short uploads.
"""

# =============================================================================
# Resumable Upload Defaults
# =============================================================================

# Payloads larger than this use a resumable session; smaller ones go in one request
RESUMABLE_THRESHOLD = 256 * 1024

# First chunk size of a resumable session (the protocol requires multiples of 256 KiB)
DEFAULT_CHUNK_SIZE = 256 * 1024

# Chunk size never grows past this
MAX_CHUNK_SIZE = 32 * 1024 * 1024

# Unbounded, matching the protocol's own behavior; set an int to cap silent restarts
DEFAULT_MAX_STATUS_REFETCHES = None

# =============================================================================
# HTTP Backend Defaults
# =============================================================================

# Parallel workers serving backend calls (one call per task is in flight at a time)
DEFAULT_BACKEND_WORKERS = 4

# Piece size used when streaming a chunk body, checked against cancellation in between
STREAM_PIECE_SIZE = 64 * 1024

# Total time budget for retrying a single upload request, in seconds
DEFAULT_MAX_UPLOAD_RETRY_TIME = 10 * 60
