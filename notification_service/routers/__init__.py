"""
API routers package
"""

from notification_service.routers.outbox import router as outbox_router
