# provisioning/config.py
import logging
import os

from dotenv import load_dotenv

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)

# --- Configuration ---
PROJECT_ID = os.getenv("GOOGLE_CLOUD_PROJECT", "your-project-id")

# !###############################################
# !   EITHER A FULL DATABASE_URL IN THE .ENV FILE
# !   OR THE DB_* PIECES (PASSWORD MAY COME FROM
# !   SECRET MANAGER THROUGH DB_SECRET_ID)
# !###############################################
DATABASE_URL        = os.environ.get("DATABASE_URL", "")
DB_HOST             = os.environ.get("DB_HOST", "localhost")
DB_PORT             = int(os.environ.get("DB_PORT", "5432"))
DB_NAME             = os.environ.get("DB_NAME", "agency")
DB_USER             = os.environ.get("DB_USER", "postgres")
DB_PASSWORD         = os.environ.get("DB_PASSWORD")
DB_SECRET_ID        = os.environ.get("DB_SECRET_ID")
SQLITE_PATH         = os.environ.get("SQLITE_PATH", "provisioning.db")

IS_LOCAL_DB = (DB_HOST == "localhost") and not DATABASE_URL

# roles admitted by the authorization gate
ALLOWED_ROLES = tuple(
    r.strip()
    for r in os.environ.get("ALLOWED_ROLES", "admin,team_member").split(",")
    if r.strip()
)

DASHBOARD_URL_PREFIX = os.environ.get("DASHBOARD_URL_PREFIX", "/dashboard")

# 0 disables the deadline
PROVISIONING_TIMEOUT_SECONDS = float(os.environ.get("PROVISIONING_TIMEOUT_SECONDS", "60"))

CORS_ALLOW_ORIGINS = [
    o.strip() for o in os.environ.get("CORS_ALLOW_ORIGINS", "*").split(",") if o.strip()
]

SERVER_HOST = os.environ.get("SERVER_HOST", "0.0.0.0")
SERVER_PORT = int(os.environ.get("SERVER_PORT", "8000"))
