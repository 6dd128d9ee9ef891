from urllib.parse import quote

from pydantic_settings import BaseSettings
from pydantic import BaseModel, ConfigDict, Field


class DatabaseSettings(BaseModel):
    host: str = "localhost"
    port: int = 5432
    username: str = "postgres"
    password: str = "password"
    database_name: str = "newsletter"
    require_ssl: bool = False

    def connection_string_without_db(self) -> str:
        """
        DSN for the server itself, used to create or drop databases.
        """
        user = quote(self.username, safe="")
        password = quote(self.password, safe="")
        return f"postgresql://{user}:{password}@{self.host}:{self.port}"

    def connection_string(self) -> str:
        return f"{self.connection_string_without_db()}/{self.database_name}"

    def sqlalchemy_url(self) -> str:
        """
        Same DSN with the asyncpg driver spelled out, for SQLAlchemy and Alembic.
        """
        url = self.connection_string().replace("postgresql://", "postgresql+asyncpg://", 1)
        return f"{url}?ssl=require" if self.require_ssl else url

    def ssl_mode(self) -> str:
        return "require" if self.require_ssl else "prefer"


class ApplicationSettings(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8000


class Settings(BaseSettings):
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    application: ApplicationSettings = Field(default_factory=ApplicationSettings)
    pool_min_size: int = 1
    pool_max_size: int = 10
    log_level: str = "INFO"

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore"
    )


def get_configuration() -> Settings:
    """Read a fresh Settings object; callers are free to mutate it."""
    return Settings()


settings = get_configuration()
