"""Runtime configuration for the fulfillment service, read from the environment."""

import os
from typing import Optional

from pydantic import BaseModel, Field


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class ServiceConfig(BaseModel):
    """Settings of one fulfillment service process.

    Attributes:
        kafka_bootstrap_servers: Comma-separated list of Kafka broker addresses.
        kafka_consumer_group: Consumer group used for the order/restock topics.
        mock_mode: Skip every Kafka connection (local runs and tests).
        log_level: Minimum loguru level.
        log_file: Optional rotating log file.
        log_json: Emit serialized JSON log records.
        ledger_lock_timeout: Seconds to wait for a ledger lock, None waits forever.
        catalog_file: Optional JSON product list loaded at startup.
    """

    kafka_bootstrap_servers: str = "kafka:9092"
    kafka_consumer_group: str = "fulfillment-service"
    mock_mode: bool = False
    log_level: str = "INFO"
    log_file: Optional[str] = None
    log_json: bool = False
    ledger_lock_timeout: Optional[float] = Field(default=None, gt=0)
    catalog_file: Optional[str] = None

    @classmethod
    def from_env(cls) -> "ServiceConfig":
        """Build the configuration from environment variables."""
        timeout = os.getenv("LEDGER_LOCK_TIMEOUT")
        return cls(
            kafka_bootstrap_servers=os.getenv("KAFKA_BOOTSTRAP_SERVERS", "kafka:9092"),
            kafka_consumer_group=os.getenv("KAFKA_CONSUMER_GROUP", "fulfillment-service"),
            mock_mode=_env_flag("MOCK_MODE"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_file=os.getenv("LOG_FILE") or None,
            log_json=_env_flag("LOG_JSON"),
            ledger_lock_timeout=float(timeout) if timeout else None,
            catalog_file=os.getenv("CATALOG_FILE") or None,
        )


config = ServiceConfig.from_env()
