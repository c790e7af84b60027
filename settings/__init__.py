"""Application settings."""

import os
from pathlib import Path

# Databases
DB_PATH = os.getenv("CRM_DB_PATH", "crm.duckdb")
SHARED_CACHE_PATH = os.getenv("CRM_SHARED_CACHE_PATH", "crm_cache.duckdb")
OFFLINE_DB_PATH = os.getenv("CRM_OFFLINE_DB_PATH", "crm_offline.duckdb")

# Logging
LOG_DIR = Path(os.getenv("CRM_LOG_DIR", "logs"))
LOG_LEVEL = os.getenv("CRM_LOG_LEVEL", "INFO")

# Distributed cache tier
SHARED_CACHE_TTL = int(os.getenv("CRM_SHARED_CACHE_TTL", "300"))
SHARED_CACHE_PREFIX = "crm:"

# Client cache tier
CLIENT_CACHE_TTL = float(os.getenv("CRM_CLIENT_CACHE_TTL", "30"))
DEDUPING_INTERVAL = 2.0
FOCUS_THROTTLE_INTERVAL = 5.0
ERROR_RETRY_COUNT = 3
ERROR_RETRY_INTERVAL = 1.0

# Offline store
OFFLINE_SNAPSHOT_TTL = 600
SYNC_BATCH_SIZE = 10
SYNC_MAX_BACKOFF = 3600

# User directory
USER_CACHE_TTL = 3600
USER_CACHE_MAX_SIZE = 500

# Paging
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
MAX_SEARCH_LENGTH = 100

# Connectivity
HEALTHCHECK_URL = os.getenv("CRM_HEALTHCHECK_URL", "")
HEALTHCHECK_TIMEOUT = 5
