"""Constants used through the app."""

import os
from pathlib import Path

# Directories
_env_instance_dir = os.getenv("INSTANCE_DIR")
DEFAULT_INSTANCE_PATH = Path(_env_instance_dir) if _env_instance_dir else Path(__file__).parent.parent / "instance"

# API
API_V1_STR = "/api/v1"

# Config
ENV_PREFIX = "LEARNOVA_"
TESTING_ENV_VAR = "LEARNOVA_TESTING"
MAX_MEDIA_ACCOUNTS = 5

# Sizes
MEBIBYTE = 1024 * 1024
DEFAULT_MAX_UPLOAD_BYTES = 500 * MEBIBYTE
DEFAULT_CHUNK_SIZE_BYTES = 10 * MEBIBYTE
MIN_CHUNK_SIZE_BYTES = 5 * MEBIBYTE  # The media host rejects smaller non-final chunks
