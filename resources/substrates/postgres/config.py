"""Settings model for shared Postgres substrate access."""

from __future__ import annotations

from urllib.parse import quote_plus

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from packages.pbx_shared.config import PbxSettings, resolve_component_settings
from resources.substrates.postgres.component import RESOURCE_COMPONENT_ID

_SSL_MODES = frozenset(
    {"disable", "allow", "prefer", "require", "verify-ca", "verify-full"}
)


class PostgresSettings(BaseModel):
    """Runtime settings for constructing Postgres engines and pools.

    ``url`` wins when set; otherwise it is assembled from the split
    host/port/database/user/password values.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    url: str = ""
    host: str = "postgres"
    port: int = Field(default=5432, gt=0)
    database: str = "pbx"
    user: str = "pbx"
    password: str = "pbx"
    pool_size: int = Field(default=5, gt=0)
    max_overflow: int = Field(default=10, ge=0)
    pool_timeout_seconds: float = Field(default=30.0, gt=0)
    pool_pre_ping: bool = True
    connect_timeout_seconds: float = Field(default=10.0, gt=0)
    health_timeout_seconds: float = Field(default=1.0, gt=0)
    sslmode: str = "prefer"

    @field_validator("sslmode")
    @classmethod
    def _validate_sslmode(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in _SSL_MODES:
            raise ValueError(
                "sslmode must be one of: " + ", ".join(sorted(_SSL_MODES))
            )
        return normalized

    @model_validator(mode="after")
    def _require_location(self) -> "PostgresSettings":
        if self.url.strip():
            return self
        if not self.host.strip():
            raise ValueError("host is required when url is unset")
        if not self.database.strip():
            raise ValueError("database is required when url is unset")
        if not self.user.strip():
            raise ValueError("user is required when url is unset")
        return self

    @property
    def dsn(self) -> str:
        """SQLAlchemy URL using the psycopg 3 driver."""
        if self.url.strip():
            return self.url.strip()
        return (
            "postgresql+psycopg://"
            f"{quote_plus(self.user)}:{quote_plus(self.password)}"
            f"@{self.host}:{self.port}/{quote_plus(self.database)}"
        )


def resolve_postgres_settings(settings: PbxSettings) -> PostgresSettings:
    """Resolve settings from ``components.substrate.postgres``."""
    return resolve_component_settings(
        settings=settings,
        component_id=RESOURCE_COMPONENT_ID,
        model=PostgresSettings,
    )
