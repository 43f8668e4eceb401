import os
from pathlib import Path

BASE_DIR = Path(__file__).parent
DATA_DIR = Path(os.environ.get("BIMFLOW_DATA_DIR", BASE_DIR / "data"))

DATABASE_PATH = Path(os.environ.get("BIMFLOW_DATABASE_PATH", DATA_DIR / "bim.duckdb"))
EXECUTIONS_DATABASE_PATH = DATABASE_PATH.parent / "workflow_executions.duckdb"

# Thread pool used for blocking collaborator and database calls
DB_POOL_SIZE = int(os.environ.get("BIMFLOW_DB_POOL_SIZE", "4"))

BSDD_API_BASE_URL = os.environ.get("BIMFLOW_BSDD_URL", "https://api.bsdd.buildingsmart.org/api")
BSDD_LANGUAGE_CODE = os.environ.get("BIMFLOW_BSDD_LANGUAGE", "en-GB")
BSDD_REQUEST_TIMEOUT = float(os.environ.get("BIMFLOW_BSDD_TIMEOUT", "10"))
BSDD_MAX_RETRIES = 3
BSDD_INITIAL_RETRY_DELAY = 1.0  # seconds, doubled on each server-error retry
BSDD_CACHE_MAX_SIZE = 512
# Cache lifetimes in seconds: searches for an hour, class details for a day
BSDD_SEARCH_CACHE_TTL = float(os.environ.get("BIMFLOW_BSDD_SEARCH_TTL", 60 * 60))
BSDD_CLASS_CACHE_TTL = float(os.environ.get("BIMFLOW_BSDD_CLASS_TTL", 24 * 60 * 60))

LOG_LEVEL = os.environ.get("BIMFLOW_LOG_LEVEL", "INFO")
LOG_FILE = os.environ.get("BIMFLOW_LOG_FILE")
try:
    LOG_MAX_LEN = int(os.environ.get("BIMFLOW_LOG_MAX_LEN", "0"))
except ValueError:
    LOG_MAX_LEN = 0

SERVER_HOST = os.environ.get("BIMFLOW_HOST", "127.0.0.1")
SERVER_PORT = int(os.environ.get("BIMFLOW_PORT", "5000"))

DATA_DIR.mkdir(parents=True, exist_ok=True)
