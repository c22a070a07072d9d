"""
Tests for PolicyResolver and policy document parsing.
"""

import pytest

from notification_service.models.platform_setting import PlatformSetting
from notification_service.services.policy import (
    BILLING_POLICY_KEY,
    DEFAULT_NOTIFICATION_POLICY,
    NOTIFICATION_POLICY_KEY,
    NotificationPolicy,
    PolicyResolver,
    normalize_offsets,
    resolve_trial_days,
)


def store_setting(db, key, value):
    db.add(PlatformSetting(key=key, value=value))
    db.commit()


class TestGetSetting:

    def test_missing_row_returns_fallback(self, db):
        resolver = PolicyResolver(db)
        result = resolver.get_setting(NOTIFICATION_POLICY_KEY, DEFAULT_NOTIFICATION_POLICY)

        assert result == DEFAULT_NOTIFICATION_POLICY
        assert result is not DEFAULT_NOTIFICATION_POLICY

    @pytest.mark.parametrize("value", [None, [1, 2, 3], "daily", 42, True])
    def test_non_object_value_returns_fallback(self, db, value):
        store_setting(db, NOTIFICATION_POLICY_KEY, value)

        result = PolicyResolver(db).get_setting(NOTIFICATION_POLICY_KEY, {"fallback": True})

        assert result == {"fallback": True}

    def test_object_value_is_returned_without_merging(self, db):
        store_setting(db, NOTIFICATION_POLICY_KEY, {"channels": {"email": False}})

        result = PolicyResolver(db).get_setting(NOTIFICATION_POLICY_KEY, DEFAULT_NOTIFICATION_POLICY)

        assert result == {"channels": {"email": False}}


class TestNotificationPolicy:

    def test_defaults_when_unset(self, db):
        policy = PolicyResolver(db).notification_policy()

        assert policy.renewal_cadence_days == [7, 3, 1]
        assert policy.is_channel_enabled("trialMilestone", "inApp") is True
        assert policy.is_channel_enabled("renewalReminder", "email") is True

    def test_partial_document_uses_field_defaults(self, db):
        store_setting(db, NOTIFICATION_POLICY_KEY, {"channels": {"email": False}})

        policy = PolicyResolver(db).notification_policy()

        # Stored object is used as-is: no cadence means no offsets from this policy
        assert policy.renewal_cadence_days == []
        assert policy.is_channel_enabled("trialMilestone", "email") is False
        assert policy.is_channel_enabled("trialMilestone", "inApp") is True

    def test_category_flag_and_global_flag_both_required(self):
        policy = NotificationPolicy.from_document({
            "channels": {"inApp": True, "email": True},
            "categories": {"renewalReminder": {"inApp": False}},
        })

        assert policy.is_channel_enabled("renewalReminder", "inApp") is False
        assert policy.is_channel_enabled("renewalReminder", "email") is True
        assert policy.is_channel_enabled("trialMilestone", "inApp") is True

    def test_malformed_sections_count_as_enabled(self):
        policy = NotificationPolicy.from_document({"channels": "on", "categories": ["x"]})

        assert policy.is_channel_enabled("trialMilestone", "inApp") is True
        assert policy.is_channel_enabled("trialMilestone", "email") is True


class TestBillingPolicy:

    def test_defaults_when_unset(self, db):
        policy = PolicyResolver(db).billing_policy()

        assert policy.default_trial_days == 14
        assert policy.reminder_cadence_days == [7, 3, 1]

    def test_stored_trial_days_are_floored(self, db):
        store_setting(db, BILLING_POLICY_KEY, {"defaultTrialDays": 10.8, "reminderCadenceDays": [5]})

        policy = PolicyResolver(db).billing_policy()

        assert policy.default_trial_days == 10
        assert policy.reminder_cadence_days == [5]


class TestOffsets:

    def test_normalize_offsets(self):
        assert normalize_offsets([3, "7", -1, 2.9, "x", True, 3, None]) == [3, 7, 2]

    def test_non_list_is_empty(self):
        assert normalize_offsets("7,3,1") == []
        assert normalize_offsets(None) == []

    @pytest.mark.parametrize("value,expected", [
        (None, 14),
        ("abc", 14),
        (True, 14),
        (0, 1),
        (-5, 1),
        (21.9, 21),
    ])
    def test_resolve_trial_days(self, value, expected):
        assert resolve_trial_days(value) == expected

    def test_reminder_offsets_union_sorted_descending(self, db):
        store_setting(db, NOTIFICATION_POLICY_KEY, {"renewalCadenceDays": [7, 3]})
        store_setting(db, BILLING_POLICY_KEY, {"reminderCadenceDays": [5, 3]})

        assert PolicyResolver(db).reminder_offsets() == [7, 5, 3]
