"""
Application settings and configuration.
"""
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""
    
    # Database
    DATABASE_URL: str = "sqlite:///./account_ingest.db"
    DATABASE_ECHO: bool = False
    
    # Ingestion
    INGESTION_BATCH_SIZE: int = 5000
    PROGRESS_UPDATE_INTERVAL: int = 10000  # Report job progress every N rows
    CSV_DELIMITER: str = ","
    CSV_ENCODING: str = "utf-8"
    
    # Export
    EXPORT_FETCH_SIZE: int = 5000
    
    # Spooling of uploaded files ("local" or "s3")
    SPOOL_BACKEND: str = "local"
    SPOOL_DIR: Optional[str] = None
    SPOOL_BUCKET_NAME: Optional[str] = None
    SPOOL_KEY_PREFIX: str = "ingestion-uploads/"
    AWS_REGION: str = "us-east-1"
    
    # API
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8080
    
    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"
    
    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
