"""
Tests for the outbox worker: claiming, backoff, retry accounting.
"""

from datetime import timedelta
from unittest.mock import Mock

import pytest
from sqlalchemy import event

from notification_service.models.outbox_message import (
    OutboxMessage,
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_SENDING,
    STATUS_SENT,
)
from notification_service.services.outbox_store import OutboxStore
from notification_service.services.outbox_worker import (
    OutboxWorker,
    compute_backoff_seconds,
    is_retry_due,
)
from notification_service.services.transport import OutboxDeliveryError, WebhookTransport


def add_message(db, clock, **overrides):
    fields = {
        "template_id": "reminder.trial.expiry.d3",
        "recipient": "owner@acme.test",
        "payload": {"title": "Trial ends in 3 days"},
        "status": STATUS_PENDING,
        "retry_count": 0,
        "created_at": clock.now,
        "updated_at": clock.now,
    }
    fields.update(overrides)
    message = OutboxMessage(**fields)
    db.add(message)
    db.commit()
    return message.id


def reload(db, message_id):
    db.expire_all()
    return db.get(OutboxMessage, message_id)


@pytest.fixture
def transport():
    return Mock(spec=WebhookTransport)


@pytest.fixture
def worker(session_factory, transport, clock):
    return OutboxWorker(
        session_factory,
        transport=transport,
        batch_size=20,
        max_retries=5,
        retry_base_seconds=30,
        retry_cap_seconds=3600,
        clock=clock,
    )


class TestBackoff:

    def test_doubles_from_base(self):
        assert compute_backoff_seconds(1, 30) == 30
        assert compute_backoff_seconds(2, 30) == 60
        assert compute_backoff_seconds(3, 30) == 120

    def test_capped_at_one_hour(self):
        assert compute_backoff_seconds(20, 30) == 3600

    def test_never_failed_has_no_backoff(self):
        assert compute_backoff_seconds(0, 30) == 0

    def test_retry_due_boundary(self, clock):
        now = clock.now
        assert is_retry_due(now - timedelta(seconds=59), 2, now, 30) is False
        assert is_retry_due(now - timedelta(seconds=60), 2, now, 30) is True


class TestRunCycle:

    def test_fresh_message_is_sent(self, db, worker, transport, clock):
        message_id = add_message(db, clock)

        assert worker.run_cycle() == 1

        message = reload(db, message_id)
        assert message.status == STATUS_SENT
        assert message.sent_at == clock.now
        assert message.error is None
        transport.send.assert_called_once_with(
            outbox_id=message_id,
            recipient="owner@acme.test",
            tenant_id=None,
            template_id="reminder.trial.expiry.d3",
            payload={"title": "Trial ends in 3 days"},
        )

    def test_fresh_message_ignores_future_updated_at(self, db, worker, clock):
        message_id = add_message(db, clock, updated_at=clock.now + timedelta(hours=1))

        assert worker.run_cycle() == 1
        assert reload(db, message_id).status == STATUS_SENT

    def test_message_inside_backoff_window_is_skipped(self, db, worker, transport, clock):
        message_id = add_message(
            db, clock, retry_count=2, updated_at=clock.now - timedelta(seconds=59)
        )

        assert worker.run_cycle() == 0

        message = reload(db, message_id)
        assert message.status == STATUS_PENDING
        assert message.retry_count == 2
        transport.send.assert_not_called()

    def test_message_past_backoff_window_is_attempted(self, db, worker, clock):
        message_id = add_message(
            db, clock, retry_count=2, updated_at=clock.now - timedelta(seconds=60)
        )

        assert worker.run_cycle() == 1
        assert reload(db, message_id).status == STATUS_SENT

    def test_failure_schedules_retry(self, db, worker, transport, clock):
        transport.send.side_effect = OutboxDeliveryError("Webhook delivery failed (500): boom")
        message_id = add_message(db, clock)

        assert worker.run_cycle() == 1

        message = reload(db, message_id)
        assert message.status == STATUS_PENDING
        assert message.retry_count == 1
        assert message.error == "Webhook delivery failed (500): boom"
        assert message.updated_at == clock.now

    def test_last_attempt_marks_failed(self, db, worker, transport, clock):
        transport.send.side_effect = OutboxDeliveryError("down")
        message_id = add_message(
            db, clock, retry_count=4, updated_at=clock.now - timedelta(hours=2)
        )

        worker.run_cycle()

        message = reload(db, message_id)
        assert message.status == STATUS_FAILED
        assert message.retry_count == 5

    def test_exhausted_message_is_not_fetched(self, db, worker, transport, clock):
        add_message(db, clock, retry_count=5, updated_at=clock.now - timedelta(days=1))

        assert worker.run_cycle() == 0
        transport.send.assert_not_called()

    def test_error_without_message_uses_exception_name(self, db, worker, transport, clock):
        transport.send.side_effect = RuntimeError()
        message_id = add_message(db, clock)

        worker.run_cycle()

        assert reload(db, message_id).error == "RuntimeError"

    def test_long_error_is_truncated(self, db, worker, transport, clock):
        transport.send.side_effect = OutboxDeliveryError("x" * 2000)
        message_id = add_message(db, clock)

        worker.run_cycle()

        assert len(reload(db, message_id).error) == 500

    def test_oldest_message_goes_first(self, db, session_factory, transport, clock):
        newer = add_message(db, clock, recipient="b@acme.test")
        older = add_message(
            db, clock, recipient="a@acme.test", created_at=clock.now - timedelta(minutes=5)
        )
        worker = OutboxWorker(session_factory, transport=transport, batch_size=1, clock=clock)

        assert worker.run_cycle() == 1

        assert reload(db, older).status == STATUS_SENT
        assert reload(db, newer).status == STATUS_PENDING

    def test_persist_failure_does_not_stop_batch(self, db, worker, clock, monkeypatch):
        first = add_message(db, clock, recipient="a@acme.test", created_at=clock.now - timedelta(minutes=1))
        second = add_message(db, clock, recipient="b@acme.test")

        real_mark_sent = OutboxStore.mark_sent
        calls = []

        def flaky_mark_sent(store, message_id, now):
            calls.append(message_id)
            if len(calls) == 1:
                raise RuntimeError("database went away")
            return real_mark_sent(store, message_id, now)

        monkeypatch.setattr(OutboxStore, "mark_sent", flaky_mark_sent)

        assert worker.run_cycle() == 2

        # Claimed but never finalized: stays in Sending
        assert reload(db, first).status == STATUS_SENDING
        assert reload(db, second).status == STATUS_SENT

    def test_read_failure_mid_batch_does_not_stop_batch(self, db, session_factory, worker, clock):
        ids = [
            add_message(db, clock, recipient=f"{name}@acme.test", created_at=clock.now - timedelta(minutes=offset))
            for name, offset in (("a", 3), ("b", 2), ("c", 1))
        ]
        selects = []

        def fail_second_select(orm_execute_state):
            if orm_execute_state.is_select:
                selects.append(orm_execute_state.statement)
                if len(selects) == 2:
                    raise RuntimeError("connection reset")

        event.listen(session_factory, "do_orm_execute", fail_second_select)
        try:
            processed = worker.run_cycle()
        finally:
            event.remove(session_factory, "do_orm_execute", fail_second_select)

        assert processed == 3
        assert [reload(db, message_id).status for message_id in ids] == [STATUS_SENT] * 3

    def test_claim_failure_does_not_stop_batch(self, db, worker, clock, monkeypatch):
        ids = [
            add_message(db, clock, recipient=f"{name}@acme.test", created_at=clock.now - timedelta(minutes=offset))
            for name, offset in (("a", 3), ("b", 2), ("c", 1))
        ]
        real_claim = OutboxStore.claim
        calls = []

        def flaky_claim(store, message_id, expected_retry_count, now, expected_status=STATUS_PENDING):
            calls.append(message_id)
            if len(calls) == 2:
                raise RuntimeError("deadlock detected")
            return real_claim(store, message_id, expected_retry_count, now, expected_status)

        monkeypatch.setattr(OutboxStore, "claim", flaky_claim)

        assert worker.run_cycle() == 2
        assert [reload(db, message_id).status for message_id in ids] == [
            STATUS_SENT, STATUS_PENDING, STATUS_SENT
        ]

    def test_explicit_zero_overrides_are_kept(self, session_factory, transport, clock):
        worker = OutboxWorker(
            session_factory,
            transport=transport,
            batch_size=0,
            max_retries=0,
            retry_base_seconds=0,
            retry_cap_seconds=0,
            clock=clock,
        )

        assert (worker.batch_size, worker.max_retries) == (0, 0)
        assert (worker.retry_base_seconds, worker.retry_cap_seconds) == (0, 0)

    def test_query_failure_returns_zero(self, worker, monkeypatch):
        def broken(*args, **kwargs):
            raise RuntimeError("connection refused")

        monkeypatch.setattr(OutboxStore, "find_due_batch", broken)

        assert worker.run_cycle() == 0

    def test_log_only_transport_marks_sent(self, db, session_factory, clock):
        client = Mock()
        transport = WebhookTransport(url=None, client=client)
        worker = OutboxWorker(session_factory, transport=transport, clock=clock)
        message_id = add_message(db, clock)

        assert worker.run_cycle() == 1

        assert reload(db, message_id).status == STATUS_SENT
        client.post.assert_not_called()


class TestClaim:

    def test_only_one_claim_wins(self, db, session_factory, clock):
        message_id = add_message(db, clock)
        first = OutboxStore(session_factory())
        second = OutboxStore(session_factory())

        results = [
            first.claim(message_id, 0, clock.now),
            second.claim(message_id, 0, clock.now),
        ]

        assert results.count(True) == 1
        assert reload(db, message_id).status == STATUS_SENDING
        first.db.close()
        second.db.close()

    def test_stale_retry_count_loses(self, db, clock):
        message_id = add_message(db, clock, retry_count=1)

        assert OutboxStore(db).claim(message_id, 0, clock.now) is False
        assert reload(db, message_id).status == STATUS_PENDING

    def test_claim_checks_expected_status(self, db, clock):
        message_id = add_message(db, clock)
        store = OutboxStore(db)

        assert store.claim(message_id, 0, clock.now, expected_status=STATUS_SENDING) is False
        assert store.claim(message_id, 0, clock.now, expected_status=STATUS_PENDING) is True
        assert reload(db, message_id).status == STATUS_SENDING
