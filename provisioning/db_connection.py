# provisioning/db_connection.py
import logging
import os
from functools import lru_cache
from typing import Callable, Optional

from google.cloud import secretmanager
from google.oauth2 import service_account
from sqlalchemy import create_engine, event
from sqlalchemy.engine import URL, Engine
from sqlalchemy.orm import Session, sessionmaker

from provisioning import config
from provisioning.entities import Base

logger = logging.getLogger("provisioning.db")

SECRET_SCOPES = ["https://www.googleapis.com/auth/cloud-platform"]


def _service_account_credentials() -> Optional[service_account.Credentials]:
    # None lets the Secret Manager client fall back to application default credentials
    key_path = os.environ.get("GOOGLE_APPLICATION_CREDENTIALS")
    if key_path and os.path.exists(key_path):
        return service_account.Credentials.from_service_account_file(key_path, scopes=SECRET_SCOPES)
    return None


@lru_cache(maxsize=None)
def read_secret(project_id: str, secret_id: str, version: str = "latest") -> str:
    client = secretmanager.SecretManagerServiceClient(credentials=_service_account_credentials())
    name = client.secret_version_path(project_id, secret_id, version)
    resp = client.access_secret_version(request={"name": name})
    logger.info("[DB] Read password from secret %s", secret_id)
    return resp.payload.data.decode("utf-8")


def build_database_url() -> str:
    """
    DATABASE_URL wins; otherwise a local SQLite file when DB_HOST is localhost,
    otherwise Postgres over pg8000 with the password taken from DB_PASSWORD or,
    failing that, from the DB_SECRET_ID secret.
    """
    if config.DATABASE_URL:
        return config.DATABASE_URL
    if config.IS_LOCAL_DB:
        return f"sqlite:///{config.SQLITE_PATH}"

    if config.DB_PASSWORD:
        password = config.DB_PASSWORD
    elif config.DB_SECRET_ID:
        password = read_secret(config.PROJECT_ID, config.DB_SECRET_ID)
    else:
        raise RuntimeError("No DB_PASSWORD and no DB_SECRET_ID configured")

    url = URL.create(
        "postgresql+pg8000",
        username=config.DB_USER,
        password=password,
        host=config.DB_HOST,
        port=config.DB_PORT,
        database=config.DB_NAME,
    )
    return url.render_as_string(hide_password=False)


def _enable_sqlite_foreign_keys(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _set_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def get_db_engine(url: str | None = None, **kwargs) -> Engine:
    url = url or build_database_url()

    if url.startswith("sqlite"):
        logger.info("[DB] Using SQLite URL: %s", url)
        engine = create_engine(url, future=True, **kwargs)
        _enable_sqlite_foreign_keys(engine)
        return engine

    logger.info("[DB] Connecting to %s@%s:%s/%s", config.DB_USER, config.DB_HOST, config.DB_PORT, config.DB_NAME)
    # pg8000 supports 'timeout' in seconds
    return create_engine(
        url,
        future=True,
        pool_pre_ping=True,
        connect_args={"timeout": 10},  # fail in 10s instead of hanging forever
        **kwargs,
    )


def build_db_session_factory(engine: Engine | None = None, create_schema: bool = True) -> Callable[[], Session]:
    engine = engine or get_db_engine()
    if create_schema:
        Base.metadata.create_all(engine)
    return sessionmaker(
        bind=engine,
        autoflush=False,
        expire_on_commit=False,
        future=True,
    )
