"""Logger module for the fulfillment service."""

from logging_utils.config import setup_service_logger

from .config import config

logger = setup_service_logger(
    "fulfillment-service",
    log_level=config.log_level,
    log_file=config.log_file,
    serialize=config.log_json,
)

__all__ = ["logger"]
