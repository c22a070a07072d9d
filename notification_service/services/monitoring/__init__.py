"""
Monitoring Module
Exports for structured logging
"""

from notification_service.services.monitoring.logging import (
    setup_logging,
    configure_structlog,
    ServiceJsonFormatter,
)

__all__ = [
    "setup_logging",
    "configure_structlog",
    "ServiceJsonFormatter",
]
