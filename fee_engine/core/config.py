from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")
    db_echo: bool = Field(False, alias="SQL_ECHO")
    db_pool_size: int = Field(5, alias="DB_POOL_SIZE")
    db_pool_recycle_seconds: int = Field(300, alias="DB_POOL_RECYCLE_SECONDS")

    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(15, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    log_level: str = Field("INFO", alias="LOG_LEVEL")

    currency_code: str = Field("INR", alias="CURRENCY_CODE")
    payment_link_expiry_days: int = Field(7, alias="PAYMENT_LINK_EXPIRY_DAYS")
    public_app_url: str = Field("http://localhost:3000", alias="PUBLIC_APP_URL")
    receipt_number_prefix: str = Field("RCT", alias="RECEIPT_NUMBER_PREFIX")

    # External PDF rendering service; receipts cannot be downloaded when unset
    receipt_renderer_url: Optional[str] = Field(None, alias="RECEIPT_RENDERER_URL")
    receipt_renderer_timeout_seconds: float = Field(10.0, alias="RECEIPT_RENDERER_TIMEOUT_SECONDS")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
