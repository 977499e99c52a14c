from pydantic_settings import BaseSettings
from typing import Optional
import os


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///./paperboy.db"
    redis_url: str = "redis://localhost:6379/0"

    # Business settings
    merchant_name: str = "AmarUjala Newspaper"
    currency: str = "INR"
    business_timezone: str = "Asia/Kolkata"
    default_country_code: str = "+91"

    # Payment gateway
    razorpay_key_id: Optional[str] = None
    razorpay_key_secret: Optional[str] = None
    razorpay_api_url: str = "https://api.razorpay.com/v1"

    # Sessions
    session_ttl_seconds: int = 86400

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"
    environment: str = "development"
    admin_cors_origins: str = "http://localhost:3000,http://localhost:5173"
    portal_cors_origins: str = "http://localhost:5174"

    class Config:
        # Look for .env file in project root
        env_file = os.path.join(os.path.dirname(__file__), "../..", ".env")


settings = Settings()
