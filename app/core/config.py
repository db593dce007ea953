from dotenv import load_dotenv
from pydantic_settings import BaseSettings

load_dotenv(override=True)

class Settings(BaseSettings):
    PROJECT_NAME: str = "FloppFun Auth"
    # Application settings
    PORT: int | None = 8000
    HOST: str | None = "127.0.0.1"
    VERSION: str | None = "1.0.0"
    DOC_PASSWORD: str | None = None
    CORS_ORIGINS: str = "*"
    LOG_LEVEL: str = "INFO"

    # SSL settings
    SSL_KEY: str | None = None
    SSL_CERT: str | None = None

    # SQLAlchemy database URL
    DATABASE_URL: str = "sqlite:///./floppfun.db"
    DB_SCHEMA: str | None = None

    # Login configuration
    ENCODE_KEY: str | None = None
    ENCODE_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_SECONDS: int = 1800 # 30 minutes
    SESSION_TOKEN_FORMAT: str = "jwt" # jwt | opaque
    CHALLENGE_MAX_AGE_MS: int = 300_000 # 5 minutes
    CLOCK_SKEW_MS: int = 60_000 # 1 minute

    # Rate limiting on /auth endpoints
    RATE_LIMIT_ENABLED: bool = True
    AUTH_RATE_LIMIT_REQUESTS: int = 10
    AUTH_RATE_LIMIT_WINDOW_SECONDS: int = 60

    # Redis settings
    REDIS_HOST: str | None = None
    REDIS_PORT: int | None = 6379
    REDIS_MAX_CONNECTIONS: int | None = 20
    REDIS_SSL: bool = False
    # Memory cache settings
    MEMORY_CACHE_MAX_SIZE: int = 64 * 1024 * 1024  # 64MB in bytes
    REDIS_RECHECK_INTERVAL: int = 30 * 60  # 30 minutes in seconds

    # Debug settings
    DEBUG: bool = False

    class Config:
        env_file = ".env"

# Instantiate the settings
settings = Settings()
