from typing import List
from pydantic import PostgresDsn, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    PROJECT_NAME: str = "BizDesk Backend"
    VERSION: str = "0.1.0"
    API_V1_STR: str = "/v1"
    LOG_LEVEL: str = "INFO"

    # CORS
    BACKEND_CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:8081",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:8081",
    ]

    # Database
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "bizdesk"
    POSTGRES_PORT: int = 5432

    @computed_field
    @property
    def SQLALCHEMY_DATABASE_URI(self) -> PostgresDsn:
        return PostgresDsn.build(
            scheme="postgresql+asyncpg",
            username=self.POSTGRES_USER,
            password=self.POSTGRES_PASSWORD,
            host=self.POSTGRES_SERVER,
            port=self.POSTGRES_PORT,
            path=self.POSTGRES_DB,
        )

    # Tenancy: the business id is supplied by the session/profile layer
    TENANT_HEADER: str = "X-Business-Id"

    # Live views
    PROJECTS_PAGE_SIZE: int = 3
    SENTINEL_VALUE: str = "N/A"
    DEFAULT_PROJECT_STATUS: str = "in-progress"
    SUBSCRIPTION_RETRY_ATTEMPTS: int = 3
    SUBSCRIPTION_RETRY_DELAY_SECONDS: float = 1.0

    # Export
    CURRENCY_SYMBOL: str = "$"
    INVOICE_PREFIX: str = "INV"

    model_config = SettingsConfigDict(case_sensitive=True, env_file=".env")

settings = Settings()
