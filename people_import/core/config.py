"""Application configuration loaded from environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Backend selection
    db_type: str = "sqlite"
    db_path: str = "data/people.db"

    # MySQL
    mysql_host: str = "localhost"
    mysql_port: int = 3308
    mysql_user: str = "root"
    mysql_password: str = ""
    mysql_database: str = "people"

    # PostgreSQL
    postgres_host: str = "localhost"
    postgres_port: int = 5433
    postgres_user: str = "postgres"
    postgres_password: str = "test_password"
    postgres_database: str = "people"
    postgres_pool_size: int = 10
    postgres_acquire_timeout: float = 10.0
    postgres_idle_timeout: float = 30.0

    # Import tuning
    stream_threshold_mb: float = 10.0
    chunk_size: int = 100_000
    read_chunk_size: int = 1000

    # HTTP server
    backend_host: str = "0.0.0.0"
    backend_port: int = 9200
    upload_dir: str = "data/raw"

    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_prefix": "", "extra": "ignore"}


settings = Settings()
