"""
Configuration settings for the FastAPI application
"""
from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Application
    app_name: str = "RoomFrame API"
    version: str = "1.0.0"
    environment: str = "development"
    debug: bool = True

    # CORS
    cors_origins: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5000",
        "http://127.0.0.1:5000",
    ]

    # Google AI Studio (object locator)
    google_ai_api_key: str = ""
    google_ai_detection_model: str = "gemini-2.5-flash"
    google_ai_detection_temperature: float = 0.1
    detection_timeout_seconds: float = 60.0

    # Image handling
    analysis_max_dimension: int = 1024  # Longest side sent to the locator
    analysis_jpeg_quality: int = 90
    preprocess_jpeg_quality: int = 90
    max_output_dimension: int = 2048  # Longest side of a smart-zoom canvas
    max_image_bytes: int = 15 * 1024 * 1024  # 15MB decoded

    # Logging
    log_level: str = "INFO"
    pipeline_log_level: Optional[str] = None  # Level for services.* loggers; defaults to log_level
    log_format: str = "json"

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"  # Allow extra fields from .env


# Global settings instance
settings = Settings()
