"""
Application configuration

Values are read from environment variables (a local .env file is loaded first).
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()


@dataclass
class Settings:
    database_url: Optional[str] = None
    database_name: str = "furniture_store"
    database_timeout_ms: int = 5000
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    token_ttl_hours: int = 24
    admin_email: Optional[str] = None
    admin_password: Optional[str] = None
    admin_name: str = "Admin"
    upload_dir: str = "uploads"
    max_upload_mb: int = 5
    tax_rate: float = 0.18
    shipping_fee: float = 500.0
    free_shipping_threshold: float = 10000.0
    log_level: str = "INFO"
    port: int = 8000


def load_settings() -> Settings:
    origins = os.getenv("CORS_ORIGINS", "*")
    return Settings(
        database_url=os.getenv("DATABASE_URL") or None,
        database_name=os.getenv("DATABASE_NAME", "furniture_store"),
        database_timeout_ms=int(os.getenv("DATABASE_TIMEOUT_MS", "5000")),
        cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        token_ttl_hours=int(os.getenv("TOKEN_TTL_HOURS", "24")),
        admin_email=os.getenv("ADMIN_EMAIL") or None,
        admin_password=os.getenv("ADMIN_PASSWORD") or None,
        admin_name=os.getenv("ADMIN_NAME", "Admin"),
        upload_dir=os.getenv("UPLOAD_DIR", "uploads"),
        max_upload_mb=int(os.getenv("MAX_UPLOAD_MB", "5")),
        tax_rate=float(os.getenv("TAX_RATE", "0.18")),
        shipping_fee=float(os.getenv("SHIPPING_FEE", "500")),
        free_shipping_threshold=float(os.getenv("FREE_SHIPPING_THRESHOLD", "10000")),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        port=int(os.getenv("PORT", "8000")),
    )


settings = load_settings()
