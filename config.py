import os
from pathlib import Path
from dotenv import load_dotenv
from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent

class Settings(BaseSettings):
    PROJECT_NAME: str = "Mod Garage"
    SECRET_KEY: str = os.getenv("SECRET_KEY", "garage_secret_key_123")
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///data/mod_garage.db")

    # Paths
    TEMPLATES_DIR: Path = BASE_DIR / "templates"
    STATIC_DIR: Path = BASE_DIR / "static"

    # Auth0
    AUTH0_DOMAIN: Optional[str] = os.getenv("AUTH0_DOMAIN")
    AUTH0_CLIENT_ID: Optional[str] = os.getenv("AUTH0_CLIENT_ID")
    AUTH0_CLIENT_SECRET: Optional[str] = os.getenv("AUTH0_CLIENT_SECRET")
    AUTH0_CALLBACK_URL: str = os.getenv("AUTH0_CALLBACK_URL", "http://localhost:8000/auth/callback")

    # Monetization
    ENABLE_SUBSCRIPTION: bool = False
    STRIPE_SECRET_KEY: Optional[str] = os.getenv("STRIPE_SECRET_KEY")
    STRIPE_PRICE_ID_PREMIUM: Optional[str] = os.getenv("STRIPE_PRICE_ID_PREMIUM")
    STRIPE_WEBHOOK_SECRET: Optional[str] = os.getenv("STRIPE_WEBHOOK_SECRET")
    FREE_VEHICLE_LIMIT: int = 1

    # Object storage
    STORAGE_BACKEND: str = "local" # local, supabase
    UPLOAD_ROOT: Path = BASE_DIR / "static" / "uploads"
    UPLOAD_PUBLIC_URL: str = "/static/uploads"
    SUPABASE_URL: Optional[str] = os.getenv("SUPABASE_URL")
    SUPABASE_SERVICE_KEY: Optional[str] = os.getenv("SUPABASE_SERVICE_KEY")
    BUCKET_FILE_SIZE_LIMIT: int = 5 * 1024 * 1024
    BUCKET_ALLOWED_MIME_TYPES: List[str] = ["image/jpeg", "image/png", "image/webp"]

    # Image compression
    IMAGE_QUALITY: float = 0.2
    IMAGE_MAX_WIDTH: int = 1200
    IMAGE_MAX_HEIGHT: int = 1200
    IMAGE_FORMAT: str = "jpeg"

    # Timeouts (seconds)
    UPLOAD_TIMEOUT: float = 30.0
    INSERT_TIMEOUT: float = 10.0
    SESSION_TIMEOUT: float = 5.0

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
