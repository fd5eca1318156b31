"""Adapter config parsing and model."""

from enum import StrEnum, auto
from functools import lru_cache
from typing import Self

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from couch_adapter.persistence.couch.codec import DocumentCodec


class CouchConfig(BaseModel):
    """CouchDB connection configuration."""

    host: str = Field(description="Scheme and hostname, eg http://127.0.0.1")
    port: PositiveInt
    path: str = Field(description="The database the adapter reads and writes.")
    user: str | None = None
    password: str | None = None
    timeout_seconds: float = 30

    @property
    def base_url(self) -> str:
        """Return the server URL, without the database path."""
        return f"{self.host.rstrip('/')}:{self.port}"

    @property
    def database(self) -> str:
        """Return the database name, without surrounding slashes."""
        return self.path.strip("/")

    @property
    def uses_basic_auth(self) -> bool:
        """Return True if the connection is authenticated."""
        return self.user is not None

    @model_validator(mode="after")
    def validate_parameters(self) -> Self:
        """Validate the given parameters."""
        if not self.host:
            msg = "A CouchDB host is required."
            raise ValueError(msg)
        if not self.database:
            msg = "A CouchDB path naming the database is required."
            raise ValueError(msg)
        if (self.user is None) != (self.password is None):
            msg = "Both user and password must be provided, or neither."
            raise ValueError(msg)
        return self


class ViewName(StrEnum):
    """Logical names of the views the adapter queries."""

    BY_TYPE = auto()
    BY_RELATIONSHIP = auto()


class ViewDescriptor(BaseModel):
    """Location of a view: the design document and the view within it."""

    design_id: str | None = None
    view_id: str | None = None

    @property
    def is_complete(self) -> bool:
        """Return True if both parts of the location are known."""
        return bool(self.design_id and self.view_id)


class RelationshipDetection(StrEnum):
    """How relationship properties are recognised when mapping documents."""

    SCHEMA = auto()
    HEURISTIC = auto()


class AdapterConfig(BaseModel):
    """Behavioural configuration for the adapter."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    views: dict[ViewName, ViewDescriptor | None] = Field(
        default_factory=dict,
        description=(
            "Per-view overrides of the built-in view locations. Fields left unset "
            "keep the default, None disables the view."
        ),
    )
    relationship_detection: RelationshipDetection = Field(
        default=RelationshipDetection.SCHEMA,
        description=(
            "Schema detection only maps relationships declared by a registered "
            "model type. Heuristic detection is a best-effort compatibility mode "
            "that treats any key ending in Id or Ids as a relationship."
        ),
    )
    codec: str | DocumentCodec = Field(
        default="relationship",
        description=(
            "The strategy used to map documents and models, given by name or as "
            "a DocumentCodec instance."
        ),
    )


class Environment(StrEnum):
    """Environment enum."""

    PRODUCTION = auto()
    DEVELOPMENT = auto()
    LOCAL = auto()
    TEST = auto()


class LogLevel(StrEnum):
    """Log level enum."""

    DEBUG = auto()
    INFO = auto()
    WARNING = auto()
    ERROR = auto()


class Settings(BaseSettings):
    """Settings model for a host application wiring up the adapter."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    couch_config: CouchConfig
    adapter_config: AdapterConfig = AdapterConfig()
    publish_design_document: bool = Field(
        default=True,
        description="Create or update the adapter's design document on startup.",
    )

    app_name: str = "couch-adapter"

    env: Environment = Field(
        default=Environment.PRODUCTION,
        description="The environment the host application is running in.",
    )

    log_level: LogLevel = Field(
        default=LogLevel.INFO,
        description="The log level for the application.",
    )

    @property
    def running_locally(self) -> bool:
        """Return True if running locally."""
        return self.env in (Environment.LOCAL, Environment.TEST)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get a cached settings object."""
    return Settings()  # type: ignore[call-arg]
