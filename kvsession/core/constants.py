"""
System-Wide Constants for kvsession

All magic numbers and configuration defaults centralized here.
"""

from typing import Final

# =============================================================================
# SIZE AND TIME UNITS
# =============================================================================
KB: Final[int] = 1024

SECOND_MS: Final[int] = 1000
MINUTE_S: Final[int] = 60
HOUR_S: Final[int] = 60 * MINUTE_S

# =============================================================================
# SESSION IDENTITY
# =============================================================================
EXTENDED_ID_SEPARATOR: Final[str] = "."
ID_RANDOM_BITS: Final[int] = 64
MAX_ID_ATTEMPTS: Final[int] = 16

# =============================================================================
# SESSION STATE
# =============================================================================
DEFAULT_MAX_INACTIVE_S: Final[int] = 30 * MINUTE_S
NEVER_EXPIRES: Final[int] = -1

# =============================================================================
# REMOTE STORE
# =============================================================================
DEFAULT_KEY_PREFIX: Final[str] = "kvsession:"
DEFAULT_KEY_SUFFIX: Final[str] = ""
DEFAULT_RECORD_TTL_S: Final[int] = DEFAULT_MAX_INACTIVE_S
# memcached treats TTLs above 30 days as absolute unix timestamps
MAX_RELATIVE_TTL_S: Final[int] = 30 * 24 * HOUR_S

# =============================================================================
# TRANSCODERS
# =============================================================================
BINARY_MAGIC: Final[bytes] = b"KS"
BINARY_FORMAT_VERSION: Final[int] = 1
COMPRESSION_THRESHOLD: Final[int] = 1 * KB
PICKLE_PROTOCOL: Final[int] = 4
TEXT_CHARSET: Final[str] = "iso-8859-1"
TEXT_FORMAT_VERSION: Final[str] = "1"

# =============================================================================
# HOUSEKEEPING
# =============================================================================
HOUSEKEEPER_INTERVAL_S: Final[float] = 10 * MINUTE_S
HOUSEKEEPER_SWEEP_TIMEOUT_S: Final[float] = 30.0

# =============================================================================
# RELIABILITY
# =============================================================================
RETRY_BASE_MS: Final[int] = 50
RETRY_MAX_ATTEMPTS: Final[int] = 2
