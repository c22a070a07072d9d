"""
Policy Resolver

Reads the notification and billing policy documents from the platform
settings store and turns them into typed policy objects.

- Missing row, or a stored value that is not a JSON object -> static default
  document, returned unmodified (never partially merged)
- A JSON object is taken as-is; each field read falls back to its own default
"""

import copy
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy.orm import Session

from notification_service.models.platform_setting import PlatformSetting

logger = structlog.get_logger(__name__)

NOTIFICATION_POLICY_KEY = "notification_policy"
BILLING_POLICY_KEY = "billing_policy"

DEFAULT_NOTIFICATION_POLICY = {
    "channels": {
        "inApp": True,
        "email": True,
    },
    "renewalCadenceDays": [7, 3, 1],
    "categories": {
        "trialMilestone": {"inApp": True, "email": True},
        "renewalReminder": {"inApp": True, "email": True},
        "securityAlert": {"inApp": True, "email": True},
        "supportUpdate": {"inApp": True, "email": False},
    },
}

DEFAULT_BILLING_POLICY = {
    "defaultTrialDays": 14,
    "gracePeriodDays": 7,
    "reminderCadenceDays": [7, 3, 1],
}

DEFAULT_TRIAL_DAYS = 14

CATEGORY_TRIAL_MILESTONE = "trialMilestone"
CATEGORY_RENEWAL_REMINDER = "renewalReminder"

CHANNEL_IN_APP = "inApp"
CHANNEL_EMAIL = "email"


def normalize_offsets(value: Any) -> List[int]:
    """
    Turn a loosely typed cadence list into distinct non-negative whole days.

    Accepts ints, floats and integer-like strings; anything else is dropped.
    Order of first appearance is kept.
    """
    if not isinstance(value, list):
        return []

    offsets: List[int] = []
    for entry in value:
        if isinstance(entry, bool):
            continue
        if isinstance(entry, (int, float)):
            number = entry
        else:
            try:
                number = float(str(entry).strip())
            except ValueError:
                continue
        if not math.isfinite(number) or number < 0:
            continue
        offset = int(math.floor(number))
        if offset not in offsets:
            offsets.append(offset)
    return offsets


def resolve_trial_days(value: Any) -> int:
    """Whole trial length in days, at least 1. Non-numeric values use the default."""
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        value = DEFAULT_TRIAL_DAYS
    return max(1, int(math.floor(value)))


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


@dataclass
class ChannelToggles:
    """In-app / email switches. Unset flags count as enabled."""
    in_app: bool = True
    email: bool = True

    @classmethod
    def from_document(cls, document: Any) -> "ChannelToggles":
        document = _as_dict(document)
        return cls(
            in_app=_flag(document.get(CHANNEL_IN_APP)),
            email=_flag(document.get(CHANNEL_EMAIL)),
        )

    def get(self, channel: str) -> bool:
        return self.in_app if channel == CHANNEL_IN_APP else self.email


def _flag(value: Any) -> bool:
    # Only an explicit null/absent value defaults to True
    if value is None:
        return True
    return bool(value)


@dataclass
class NotificationPolicy:
    channels: ChannelToggles = field(default_factory=ChannelToggles)
    renewal_cadence_days: List[int] = field(default_factory=list)
    categories: Dict[str, ChannelToggles] = field(default_factory=dict)

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "NotificationPolicy":
        categories = {
            name: ChannelToggles.from_document(toggles)
            for name, toggles in _as_dict(document.get("categories")).items()
        }
        return cls(
            channels=ChannelToggles.from_document(document.get("channels")),
            renewal_cadence_days=normalize_offsets(document.get("renewalCadenceDays")),
            categories=categories,
        )

    def is_channel_enabled(self, category: str, channel: str) -> bool:
        """Global channel flag AND category flag; both default to enabled."""
        global_enabled = self.channels.get(channel)
        category_toggles = self.categories.get(category)
        category_enabled = category_toggles.get(channel) if category_toggles else True
        return bool(global_enabled and category_enabled)


@dataclass
class BillingPolicy:
    default_trial_days: int = DEFAULT_TRIAL_DAYS
    reminder_cadence_days: List[int] = field(default_factory=list)

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "BillingPolicy":
        return cls(
            default_trial_days=resolve_trial_days(document.get("defaultTrialDays")),
            reminder_cadence_days=normalize_offsets(document.get("reminderCadenceDays")),
        )


class PolicyResolver:
    """
    Typed access to the platform policy documents.

    Reads go straight to the settings table on every call so policy edits
    take effect on the next job cycle without a restart.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_setting(self, key: str, fallback: Dict[str, Any]) -> Dict[str, Any]:
        """
        Return the JSON object stored under ``key``.

        Args:
            key: Settings key
            fallback: Document used when the row is missing or not an object

        Returns:
            The stored object, or a copy of ``fallback``
        """
        setting = self.db.query(PlatformSetting).filter(
            PlatformSetting.key == key
        ).first()

        if setting is None:
            return copy.deepcopy(fallback)

        if not isinstance(setting.value, dict):
            logger.warning(
                "policy_document_malformed",
                key=key,
                value_type=type(setting.value).__name__
            )
            return copy.deepcopy(fallback)

        return setting.value

    def notification_policy(self) -> NotificationPolicy:
        document = self.get_setting(NOTIFICATION_POLICY_KEY, DEFAULT_NOTIFICATION_POLICY)
        return NotificationPolicy.from_document(document)

    def billing_policy(self) -> BillingPolicy:
        document = self.get_setting(BILLING_POLICY_KEY, DEFAULT_BILLING_POLICY)
        return BillingPolicy.from_document(document)

    def reminder_offsets(
        self,
        notification_policy: Optional[NotificationPolicy] = None,
        billing_policy: Optional[BillingPolicy] = None
    ) -> List[int]:
        """Union of both cadences, largest offset first."""
        notification_policy = notification_policy or self.notification_policy()
        billing_policy = billing_policy or self.billing_policy()
        offsets = set(notification_policy.renewal_cadence_days) | set(billing_policy.reminder_cadence_days)
        return sorted(offsets, reverse=True)
