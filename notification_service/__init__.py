"""
Notification Delivery Service
Outbox dispatcher and policy-driven reminder scheduler
"""

__version__ = "0.1.0"
