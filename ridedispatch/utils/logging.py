"""Structured logging configuration."""

import logging
import sys
from typing import Any

import structlog
from pythonjsonlogger import jsonlogger

from ridedispatch.config import get_settings


def setup_logging() -> None:
    """Configure structured logging for the application."""
    settings = get_settings()

    # Configure standard library logging
    log_level = getattr(logging, settings.log_level)

    if settings.log_format == "json":
        # JSON logging for production
        handler = logging.StreamHandler(sys.stdout)
        formatter = jsonlogger.JsonFormatter(
            fmt="%(timestamp)s %(level)s %(name)s %(message)s",
            rename_fields={"levelname": "level", "asctime": "timestamp"},
        )
        handler.setFormatter(formatter)
    else:
        # Human-readable logging for development
        handler = logging.StreamHandler(sys.stdout)
        formatter = logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer() if settings.log_format == "json"
            else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


class DispatchLogger:
    """Logger for ride state changes and driver notifications."""

    def __init__(self, component: str):
        self.component = component
        self.logger = get_logger(component)

    def log_transition(
        self,
        ride_id: str,
        from_status: str,
        to_status: str,
        **kwargs: Any,
    ) -> None:
        """Log a committed ride status change."""
        self.logger.info(
            "ride_transition",
            component=self.component,
            ride_id=ride_id,
            from_status=from_status,
            to_status=to_status,
            **kwargs,
        )

    def log_push(
        self,
        ride_id: str,
        driver_id: str,
        phase: str,
        distance_km: float | None = None,
        **kwargs: Any,
    ) -> None:
        """Log a ride request pushed to a driver."""
        log_data = {
            "component": self.component,
            "ride_id": ride_id,
            "driver_id": driver_id,
            "phase": phase,
        }

        if distance_km is not None:
            log_data["distance_km"] = round(distance_km, 3)

        log_data.update(kwargs)
        self.logger.info("driver_notified", **log_data)

    def log_skip(
        self,
        ride_id: str,
        driver_id: str,
        reason: str,
        **kwargs: Any,
    ) -> None:
        """Log a driver skipped during a push batch."""
        self.logger.warning(
            "channel_unavailable",
            component=self.component,
            ride_id=ride_id,
            driver_id=driver_id,
            reason=reason,
            **kwargs,
        )

    def log_rejection(
        self,
        ride_id: str,
        reason: str,
        **kwargs: Any,
    ) -> None:
        """Log a request that lost against the ride's current state."""
        self.logger.info(
            "claim_rejected",
            component=self.component,
            ride_id=ride_id,
            reason=reason,
            **kwargs,
        )
