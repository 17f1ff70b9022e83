from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    """Application settings"""
    
    # Database
    DATABASE_URL: str
    
    # API
    API_TITLE: str = "CrewLink Messaging API"
    API_VERSION: str = "1.0.0"
    DEBUG: bool = False
    
    # Security
    SECRET_KEY: str
    ACCESS_TOKEN_EXPIRE_DAYS: int = 30
    
    # Media uploads
    UPLOAD_DIR: str = "uploads"
    MEDIA_BASE_URL: str = "http://localhost:8000"
    MAX_UPLOAD_SIZE: int = 5 * 1024 * 1024
    
    # Messaging
    MESSAGE_MAX_LENGTH: int = 5000
    MESSAGE_HISTORY_LIMIT: int = 200
    
    # Per-pair send throttle (sender -> receiver)
    MESSAGE_RATE_SHORT_LIMIT: int = 5
    MESSAGE_RATE_SHORT_WINDOW_SECONDS: int = 10
    MESSAGE_RATE_LONG_LIMIT: int = 60
    MESSAGE_RATE_LONG_WINDOW_SECONDS: int = 3600
    MESSAGE_RATE_RESET_ON_REPLY: bool = True
    
    # Client-side state machines
    CLIENT_CALL_TIMEOUT_SECONDS: float = 10.0
    UNREAD_POLL_INTERVAL_SECONDS: float = 30.0
    
    class Config:
        env_file = ".env"
        case_sensitive = True

# Create settings instance
settings = Settings()
