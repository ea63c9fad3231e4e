"""Application configuration loaded from environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Redis (durable snapshot backing)
    redis_host: str = "127.0.0.1"
    redis_port: int = 6379
    redis_db: int = 0

    # Snapshot stores: "memory" or "redis"
    snapshot_backend: str = "memory"
    snapshot_key_prefix: str = "price_ingest"

    # Dataset naming keys for the default slot stores
    benchmark_dataset: str = "zppa"
    merchant_dataset: str = "merchant"

    # Relative price change that raises a merchant price alert
    price_guard_threshold: float = 0.30

    model_config = {"env_file": ".env", "env_prefix": "", "extra": "ignore"}


settings = Settings()
