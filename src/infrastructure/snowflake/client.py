"""
Snowflake connections for the staging repositories.

Provides the connection configuration and a context-managed connection
factory. Repositories take an open connection; nothing outside this
package talks to snowflake.connector directly.

Supports password auth and key-pair auth, with the private key given
either as a PEM file path or as base64-encoded PEM (for hosts where
mounting a file is awkward).
"""

import base64
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Generator, Optional, Protocol

import snowflake.connector
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import serialization

logger = logging.getLogger(__name__)


class SnowflakeConnection(Protocol):
    """
    Protocol for Snowflake connections.

    Repositories only need a cursor and commit, so tests can hand them
    anything with that shape.
    """

    def cursor(self): ...
    def commit(self) -> None: ...


@dataclass
class SnowflakeConfig:
    """Configuration for Snowflake connection."""
    account: str
    user: str
    password: Optional[str] = None
    private_key_path: Optional[str] = None
    private_key_base64: Optional[str] = None
    database: str = "EXERCISE_LIBRARY"
    schema: str = "STAGING"
    warehouse: str = "COMPUTE_WH"
    role: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.account or not self.user:
            raise ValueError("Snowflake account and user are required")


def snowflake_config_from_settings(settings) -> SnowflakeConfig:
    """Build a SnowflakeConfig from application settings (anything with the snowflake_* fields)."""
    return SnowflakeConfig(
        account=settings.snowflake_account,
        user=settings.snowflake_user,
        password=settings.snowflake_password or None,
        private_key_path=settings.snowflake_private_key_path or None,
        private_key_base64=settings.snowflake_private_key_base64 or None,
        database=settings.snowflake_database,
        schema=settings.snowflake_schema,
        warehouse=settings.snowflake_warehouse,
        role=settings.snowflake_role or None,
    )


class SnowflakeConnectionError(Exception):
    """Connecting to Snowflake failed or no usable configuration was given."""
    pass


def _load_private_key(pem_bytes: bytes) -> bytes:
    """
    Convert a PEM private key into the DER/PKCS8 bytes snowflake-connector expects.
    """
    private_key = serialization.load_pem_private_key(
        pem_bytes,
        password=None,
        backend=default_backend(),
    )
    return private_key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def _private_key_from_config(config: SnowflakeConfig) -> Optional[bytes]:
    if config.private_key_base64:
        return _load_private_key(base64.b64decode(config.private_key_base64))
    if config.private_key_path:
        with open(config.private_key_path, "rb") as key_file:
            return _load_private_key(key_file.read())
    return None


def _connect_params(config: SnowflakeConfig) -> dict:
    params = {
        "account": config.account,
        "user": config.user,
        "database": config.database,
        "schema": config.schema,
        "warehouse": config.warehouse,
        "role": config.role,
        "client_session_keep_alive": True,
    }

    private_key = _private_key_from_config(config)
    if private_key is not None:
        logger.info("Using key-pair authentication for Snowflake")
        params["private_key"] = private_key
    elif config.password:
        logger.info("Using password authentication for Snowflake")
        params["password"] = config.password
    else:
        raise SnowflakeConnectionError(
            "Either password, private_key_path or private_key_base64 must be provided"
        )
    return params


@contextmanager
def get_snowflake_connection(config: SnowflakeConfig) -> Generator[SnowflakeConnection, None, None]:
    """
    Yield an open connection and close it when the block exits.

    Only failures to connect are translated into SnowflakeConnectionError;
    errors raised by the caller inside the with-block propagate unchanged.
    """
    try:
        conn = snowflake.connector.connect(**_connect_params(config))
    except snowflake.connector.errors.DatabaseError as e:
        logger.error(
            "Snowflake connection failed",
            extra={"error": str(e), "account": config.account}
        )
        raise SnowflakeConnectionError(f"Database connection failed: {e}") from e

    logger.debug(
        "Established Snowflake connection",
        extra={"account": config.account, "database": config.database, "schema": config.schema}
    )

    try:
        yield conn
    finally:
        try:
            conn.close()
            logger.debug("Closed Snowflake connection")
        except snowflake.connector.errors.Error as e:
            logger.warning("Error closing Snowflake connection", extra={"error": str(e)})


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------

@contextmanager
def create_snowflake_connection(
    config: Optional[SnowflakeConfig] = None,
) -> Generator[SnowflakeConnection, None, None]:
    """
    Context manager over get_snowflake_connection for a required config.

    Mock mode doesn't come through here: in-memory repositories replace
    the connection entirely (see repositories.create_repositories).
    """
    if config is None:
        raise ValueError("config is required")
    with get_snowflake_connection(config) as conn:
        yield conn
