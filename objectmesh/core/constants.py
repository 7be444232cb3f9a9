"""
System-Wide Constants for the Object Transfer Engine

All magic numbers and configuration defaults centralized here.
"""

from typing import Final

# =============================================================================
# SIZE UNITS
# =============================================================================
KB: Final[int] = 1024
MB: Final[int] = 1024 * KB
GB: Final[int] = 1024 * MB

# =============================================================================
# MULTIPART LIMITS
# =============================================================================
MIN_PART_SIZE: Final[int] = 100 * KB
MAX_PART_SIZE: Final[int] = 5 * GB
DEFAULT_PART_SIZE: Final[int] = 8 * MB
MAX_PART_NUMBER: Final[int] = 10000

# =============================================================================
# CONCURRENCY
# =============================================================================
DEFAULT_ROUTINES: Final[int] = 3
MAX_ROUTINES: Final[int] = 100

# =============================================================================
# LOCAL FILES
# =============================================================================
TEMP_FILE_SUFFIX: Final[str] = ".temp"
CHECKPOINT_FILE_SUFFIX: Final[str] = ".cp"
FILE_PERM_MODE: Final[int] = 0o600

# =============================================================================
# CHECKPOINT FORMAT TAGS
# =============================================================================
DOWNLOAD_CHECKPOINT_MAGIC: Final[str] = "92611BED-89E2-46B6-89E5-72F273D4B0A3"
UPLOAD_CHECKPOINT_MAGIC: Final[str] = "FE8BB4EA-B593-4FAC-AD7A-2459A36E2E62"
