from datetime import datetime, timezone
from typing import List

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from pydantic_settings import BaseSettings
import os
from dotenv import load_dotenv

load_dotenv()

class Settings(BaseSettings):
    app_name: str = os.getenv("APP_NAME", "SensorNet API")
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./sensornet.db")
    db_timeout_seconds: int = int(os.getenv("DB_TIMEOUT_SECONDS", "5"))

    # Sensors without contact for this long are reported as disconnected
    stale_threshold_ms: int = int(os.getenv("STALE_THRESHOLD_MS", "60000"))

    fallback_max_readings: int = int(os.getenv("FALLBACK_MAX_READINGS", "10000"))
    fallback_max_events: int = int(os.getenv("FALLBACK_MAX_EVENTS", "10000"))
    fallback_retention_days: int = int(os.getenv("FALLBACK_RETENTION_DAYS", "30"))
    retention_interval_minutes: int = int(os.getenv("RETENTION_INTERVAL_MINUTES", "60"))
    enable_scheduler: bool = os.getenv("ENABLE_SCHEDULER", "true").lower() == "true"

    cors_origins: str = os.getenv("CORS_ORIGINS", "http://localhost:3000")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    debug: bool = os.getenv("DEBUG", "false").lower() == "true"

    def cors_origin_list(self) -> List[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

settings = Settings()

Base = declarative_base()

def utcnow() -> datetime:
    """Current time as naive UTC, the form stored in every table"""
    return datetime.now(timezone.utc).replace(tzinfo=None)

def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)

def create_db_engine(config: Settings) -> Engine:
    if config.database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": config.db_timeout_seconds}
        return create_engine(config.database_url, connect_args=connect_args)
    return create_engine(
        config.database_url,
        pool_pre_ping=True,
        pool_timeout=config.db_timeout_seconds,
    )

def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
