"""
Structured JSON Logging
structlog for application events, python-json-logger for the stdlib root logger
"""

import logging
import sys

import structlog
from pythonjsonlogger import jsonlogger

from notification_service.config import settings

SERVICE_NAME = "notification-delivery"


class ServiceJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter that tags every stdlib log record with service metadata.

    Adds:
    - service: Application name for multi-service environments
    - environment: Deployment environment (development/production/testing)
    """

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record['service'] = SERVICE_NAME
        log_record['environment'] = settings.environment


def configure_structlog():
    """Render structlog events as JSON lines with ISO timestamps."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer()
        ]
    )


def setup_logging(level: int = logging.INFO):
    """
    Configure structured JSON logging to stdout.

    Sets up root logger with:
    - ServiceJsonFormatter for machine-parseable JSON output
    - INFO level logging (production default)
    - StreamHandler outputting to stdout

    Returns:
        logging.Handler: The configured handler (for testing)
    """
    handler = logging.StreamHandler(sys.stdout)

    formatter = ServiceJsonFormatter(
        '%(asctime)s %(levelname)s %(name)s %(message)s',
        rename_fields={
            'asctime': 'timestamp',
            'levelname': 'level'
        }
    )
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    configure_structlog()

    return handler
