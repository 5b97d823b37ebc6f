import os


class Settings:
    DATABASE_URL: str = os.environ.get('DATABASE_URL', 'sqlite:///./netlogs.db')
    DB_POOL_TIMEOUT: int = int(os.environ.get('DB_POOL_TIMEOUT', 30))
    STORAGE_TIMEOUT_SECONDS: float = float(os.environ.get('STORAGE_TIMEOUT_SECONDS', 10))
    MAX_WORKERS: int = int(os.environ.get('MAX_WORKERS', 10))

    # Ingestion
    MAX_BATCH_SIZE: int = int(os.environ.get('MAX_BATCH_SIZE', 100))
    MAX_BODY_BYTES: int = int(os.environ.get('MAX_BODY_BYTES', 5 * 1024 * 1024))
    FRESHNESS_PAST_DAYS: int = int(os.environ.get('FRESHNESS_PAST_DAYS', 365))
    FRESHNESS_FUTURE_MINUTES: int = int(os.environ.get('FRESHNESS_FUTURE_MINUTES', 60))

    # Query
    QUERY_DEFAULT_LIMIT: int = int(os.environ.get('QUERY_DEFAULT_LIMIT', 1000))
    QUERY_MAX_LIMIT: int = int(os.environ.get('QUERY_MAX_LIMIT', 10000))
    QUERY_CACHE_TTL_SECONDS: int = int(os.environ.get('QUERY_CACHE_TTL_SECONDS', 60))

    # Server
    LOG_LEVEL: str = os.environ.get('LOG_LEVEL', 'INFO')
    HOST: str = os.environ.get('HOST', '0.0.0.0')
    PORT: int = int(os.environ.get('PORT', 8000))
    # List of origins, comma separated
    CORS_ALLOW_ORIGINS: list = [x.strip() for x in os.environ.get('CORS_ALLOW_ORIGINS', '*').split(',') if x.strip()]

    # Collector agent
    UPLOAD_ENDPOINT: str = os.environ.get('UPLOAD_ENDPOINT', 'http://localhost:8000/upload')
    UPLOAD_TIMEOUT_SECONDS: float = float(os.environ.get('UPLOAD_TIMEOUT_SECONDS', 30))
    UPLOAD_MAX_ATTEMPTS: int = int(os.environ.get('UPLOAD_MAX_ATTEMPTS', 3))
    UPLOAD_INITIAL_DELAY_SECONDS: float = float(os.environ.get('UPLOAD_INITIAL_DELAY_SECONDS', 2))
    UPLOAD_SKIP_SSL: bool = os.environ.get('UPLOAD_SKIP_SSL', 'false').lower() == 'true'
    BUFFER_FILE: str = os.environ.get('BUFFER_FILE', 'pending_uploads.json')


settings = Settings()
