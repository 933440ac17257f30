"""
Configuration settings for the upload engine
"""
import os
from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Application settings"""
    
    # Session store
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./upload_sessions.db")
    
    # Chunking
    CHUNK_SIZE: int = int(os.getenv("CHUNK_SIZE", str(1024 * 1024)))  # 1MB
    
    # Scheduler
    MAX_PARALLEL: int = int(os.getenv("MAX_PARALLEL", "5"))
    MAX_RETRIES: int = int(os.getenv("MAX_RETRIES", "3"))
    BATCH_DELAY_SECONDS: float = float(os.getenv("BATCH_DELAY_SECONDS", "0.1"))
    
    # Transfer
    DEFAULT_SPEED_TIER: str = os.getenv("DEFAULT_SPEED_TIER", "verySlow")
    FAILURE_RATE: float = float(os.getenv("FAILURE_RATE", "0.1"))
    API_BASE_URL: str = os.getenv("API_BASE_URL", "http://localhost:8000")
    HTTP_TIMEOUT_SECONDS: float = float(os.getenv("HTTP_TIMEOUT_SECONDS", "30"))
    
    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    
    # Application
    APP_TITLE: str = "Resumable Upload"
    APP_VERSION: str = "1.0.0"


settings = Settings()
