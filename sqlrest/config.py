"""Application Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - Credentials come from environment variables or .env (defaults are for local dev only)
    - get_settings() is cached (lru_cache) — single instance per process
    - database_url, when set, wins over the individual database_* parts

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - Short aliases (dbhost, dbuser, dbpass, dbname) accepted alongside the long names
    - URL.create over string formatting: passwords with '@' or '/' are escaped
"""

from functools import lru_cache

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL, make_url


DEFAULT_DRIVER = "mysql+aiomysql"


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, populate_by_name=True,
    )

    # Database
    database_driver: str = DEFAULT_DRIVER
    database_host: str = Field(
        "localhost", validation_alias=AliasChoices("database_host", "dbhost"),
    )
    database_port: int | None = 3306
    database_user: str = Field(
        "root", validation_alias=AliasChoices("database_user", "dbuser"),
    )
    database_password: str = Field(
        "password", validation_alias=AliasChoices("database_password", "dbpass"),
    )
    database_name: str = Field(
        "mysql", validation_alias=AliasChoices("database_name", "dbname"),
    )
    database_url: str | None = None

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_mysql_url(cls, v: str | None) -> str | None:
        """Plain mysql:// URLs get the async driver."""
        if isinstance(v, str) and v.startswith("mysql://"):
            return v.replace("mysql://", f"{DEFAULT_DRIVER}://", 1)
        return v

    database_pool_size: int = Field(20, ge=1)
    database_pool_timeout: int = 30
    database_pool_recycle: int = 3600

    # API
    host: str = "0.0.0.0"
    port: int = 3000
    cors_origins: list[str] = ["*"]

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"

    @property
    def sqlalchemy_url(self) -> URL:
        """Connection URL assembled from database_url or the database_* parts."""
        if self.database_url:
            return make_url(self.database_url)
        return URL.create(
            self.database_driver,
            username=self.database_user,
            password=self.database_password,
            host=self.database_host,
            port=self.database_port,
            database=self.database_name,
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
