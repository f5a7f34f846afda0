"""Settings for the SQL log transport."""

from typing import Dict
from typing import Optional

from pydantic_settings import BaseSettings
from pydantic_settings import SettingsConfigDict


class TransportSettings(BaseSettings):
    """
    Settings for the SQL log transport.

    [pydantic.BaseSettings](https://docs.pydantic.dev/latest/concepts/pydantic_settings/) reads the
    values from environment variables prefixed with ``LOG_DB_`` (``LOG_DB_HOST``, ``LOG_DB_TABLE`` ...)
    or from a local ``.env`` file.

    Connection options are optional here so that a partially configured environment can still be
    loaded; the transport itself rejects missing values when it is constructed.
    """

    host: Optional[str] = None
    """Database host."""

    port: int = 5432
    """Database port."""

    user: Optional[str] = None
    """Database username."""

    password: Optional[str] = None
    """Database password."""

    database: Optional[str] = None
    """Database name."""

    table: Optional[str] = None
    """Table the log rows are inserted into."""

    fields: Optional[Dict[str, str]] = None
    """Custom column names, logical field -> column (JSON in the environment). Unset fields keep their defaults."""

    pool_min_size: int = 1
    """Connections opened when the pool is created."""

    pool_max_size: int = 5
    """Upper bound on pooled connections."""

    min_level: str = "INFO"
    """Minimum loguru level forwarded to the database when the transport is used as a sink."""

    emit_acquire_errors: bool = False
    """Also emit an ``error`` event when no connection can be acquired (the callback is always told)."""

    enabled: bool = False
    """Install the transport as a loguru sink in configure_logger()."""

    model_config = SettingsConfigDict(
        env_prefix="LOG_DB_",
        case_sensitive=False,
        env_file=".env",  # Load from .env file if it exists (local development)
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore extra environment variables not defined in the model
        validate_default=True,
    )
