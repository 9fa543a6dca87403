from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # App settings
    PROJECT_NAME: str = "WalletBudgetAPI"
    API_PREFIX: str = "/api"
    DEBUG: bool = Field(default=False)
    LOG_LEVEL: str = Field(default="INFO")
    PORT: int = Field(default=3000)
    CORS_ORIGINS: List[str] = Field(default_factory=lambda: ["*"])

    # DynamoDB
    DYNAMO_REGION: str = Field(default="eu-west-1")
    DYNAMO_ENDPOINT_URL: Optional[str] = Field(default=None)  # DynamoDB Local
    DYNAMO_USERS_TABLE: str = Field(default="wallet-users", validation_alias="DYNAMO_TABLE_USERS")
    DYNAMO_TRANSACTIONS_TABLE: str = Field(
        default="wallet-transactions", validation_alias="DYNAMO_TABLE_TRANSACTIONS"
    )
    DYNAMO_BLACKLIST_TABLE: str = Field(
        default="wallet-blacklisted-tokens", validation_alias="DYNAMO_TABLE_BLACKLIST"
    )
    DYNAMO_CREATE_TABLES: bool = Field(default=False)

    # JWT Authentication
    JWT_SECRET_KEY: str = Field(
        default="1f6c2d7e0b9a4c3f8e5d2a7b6c1e9f0a3d8b5c2e7f4a1d6b9c0e3f8a5d2b7c4e",
        validation_alias="JWT_SECRET",
    )
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=60, validation_alias="JWT_EXPIRES_IN_MINUTES")
    REFRESH_TOKEN_EXPIRE_DAYS: int = Field(default=30)

    # Keep-alive ping (disabled when no URL is configured)
    SELF_PING_URL: Optional[str] = Field(default=None)
    SELF_PING_INTERVAL_MINUTES: int = Field(default=14)

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")


settings = Settings()
