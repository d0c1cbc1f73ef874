"""Logging configuration shared by the supply chain services."""

import sys
from typing import Optional

from loguru import logger as loguru_logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<magenta>{extra[service]}</magenta> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[service]} | {name}:{function}:{line} - {message}"


def setup_service_logger(
    service_name: str,
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    serialize: bool = False,
) -> loguru_logger:
    """Configure the process-wide loguru sinks for a service.

    Args:
        service_name: Name of the service (e.g., 'fulfillment-service')
        log_level: Minimum level for every sink (default: INFO)
        log_file: Optional path of a rotating log file
        serialize: Emit one JSON document per record instead of the colored format

    Returns:
        logger: loguru logger bound to the service name
    """
    # Sinks are global to loguru, so every call starts from a clean slate
    loguru_logger.remove()
    loguru_logger.configure(extra={"service": service_name})

    loguru_logger.add(
        sys.stderr,
        level=log_level.upper(),
        format=CONSOLE_FORMAT,
        colorize=not serialize,
        serialize=serialize,
        enqueue=True,
        backtrace=True,
        diagnose=False,
    )

    if log_file:
        loguru_logger.add(
            log_file,
            level=log_level.upper(),
            format=FILE_FORMAT,
            serialize=serialize,
            rotation="10 MB",
            retention="1 week",
            compression="gz",
            enqueue=True,
        )

    return loguru_logger.bind(service=service_name)


def get_kafka_logger(service_name: str) -> loguru_logger:
    """Get a logger tagged for Kafka traffic of a service.

    The sinks configured by ``setup_service_logger`` are reused; only the
    bound context differs.

    Args:
        service_name: Name of the service

    Returns:
        logger: loguru logger bound to ``<service_name>.kafka``
    """
    return loguru_logger.bind(service=f"{service_name}.kafka", component="kafka")
