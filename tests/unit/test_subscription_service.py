"""Unit tests for SubscriptionService orchestration."""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from roster.models import NotificationKind
from roster.services.lifecycle_engine import SubscriptionValidationError
from roster.services.role_actuator import RoleActuationError
from roster.services.subscription_service import SubscriptionService


@pytest.fixture
def role_actuator():
    actuator = MagicMock()
    actuator.grant_role.return_value = True
    actuator.revoke_role.return_value = True
    return actuator


@pytest.fixture
def dispatcher():
    dispatcher = MagicMock()
    dispatcher.notify.return_value = True
    dispatcher.send_warning.return_value = True
    return dispatcher


@pytest.fixture
def service(engine, role_actuator, dispatcher):
    return SubscriptionService(engine, role_actuator, dispatcher)


class TestAddSubscription:
    """Test add/extend orchestration."""

    def test_new_subscription_grants_role_and_notifies(self, service, role_actuator, dispatcher):
        result = service.add_subscription("U1", 3, executor_id="admin-1")

        assert result.was_created is True
        role_actuator.grant_role.assert_called_once_with("U1", "role-default")
        kind, record, extra = dispatcher.notify.call_args.args
        assert kind is NotificationKind.GRANTED
        assert record.subscriber_id == "U1"
        assert extra == {"months_added": 3, "executor_id": "admin-1"}

    def test_extension_notifies_with_previous_expiry(self, service, dispatcher):
        first = service.add_subscription("U1", 1)

        service.add_subscription("U1", 2)

        kind, _, extra = dispatcher.notify.call_args.args
        assert kind is NotificationKind.EXTENDED
        assert extra["previous_expiry"] == first.record.expires_at.isoformat()
        assert extra["months_added"] == 2

    def test_invalid_request_has_no_side_effects(self, service, role_actuator, dispatcher, store):
        with pytest.raises(SubscriptionValidationError):
            service.add_subscription("U1", 11)

        role_actuator.grant_role.assert_not_called()
        dispatcher.notify.assert_not_called()
        assert store.count() == 0

    def test_role_failure_propagates_after_persisting(self, service, role_actuator, dispatcher, store):
        role_actuator.grant_role.side_effect = RoleActuationError("forbidden", status_code=403)

        with pytest.raises(RoleActuationError):
            service.add_subscription("U1", 1)

        assert store.exists("U1")
        dispatcher.notify.assert_not_called()


class TestRemoveSubscription:
    """Test remove orchestration."""

    def test_remove_revokes_then_deletes(self, service, role_actuator, dispatcher, store):
        service.add_subscription("U1", 1)

        removed = service.remove_subscription("U1", executor_id="admin-1")

        assert removed.subscriber_id == "U1"
        assert not store.exists("U1")
        role_actuator.revoke_role.assert_called_once_with("U1", "role-default")
        kind, _, extra = dispatcher.notify.call_args.args
        assert kind is NotificationKind.REVOKED
        assert extra == {"executor_id": "admin-1"}

    def test_remove_missing_returns_none(self, service, role_actuator):
        assert service.remove_subscription("U-missing") is None
        role_actuator.revoke_role.assert_not_called()

    def test_no_revoked_notice_when_record_vanished(self, service, role_actuator, dispatcher, store):
        """A sweep deleting the record during revocation keeps the revoked notice unsent."""
        service.add_subscription("U1", 1)
        dispatcher.notify.reset_mock()
        role_actuator.revoke_role.side_effect = lambda subscriber_id, role_id: store.delete_by_subscriber(subscriber_id)

        removed = service.remove_subscription("U1")

        assert removed.subscriber_id == "U1"
        dispatcher.notify.assert_not_called()

    def test_revoke_failure_keeps_record(self, service, role_actuator, store):
        service.add_subscription("U1", 1)
        role_actuator.revoke_role.side_effect = RoleActuationError("unavailable")

        with pytest.raises(RoleActuationError):
            service.remove_subscription("U1")

        assert store.exists("U1")


class TestRoleRemoved:
    """Test cleanup after a manual role removal."""

    def test_matching_role_deletes_subscription(self, service, dispatcher, store):
        service.add_subscription("U1", 1)

        assert service.handle_role_removed("U1", "role-default") is True
        assert not store.exists("U1")
        assert dispatcher.notify.call_args.args[0] is NotificationKind.REVOKED

    def test_any_role_when_unspecified(self, service, store):
        service.add_subscription("U1", 1)
        assert service.handle_role_removed("U1") is True

    def test_other_role_is_ignored(self, service, store):
        service.add_subscription("U1", 1)

        assert service.handle_role_removed("U1", "role-unrelated") is False
        assert store.exists("U1")

    def test_no_subscription(self, service):
        assert service.handle_role_removed("U-missing", "role-default") is False


class TestSweeps:
    """Test sweep callbacks."""

    def test_process_expired_revokes_and_notifies(self, service, role_actuator, dispatcher, clock, store):
        service.add_subscription("U1", 1)
        dispatcher.notify.reset_mock()
        clock.advance_time(days=30)

        removed = service.process_expired()

        assert removed == [("U1", "role-default")]
        role_actuator.revoke_role.assert_called_once_with("U1", "role-default")
        assert dispatcher.notify.call_args.args[0] is NotificationKind.EXPIRED
        assert not store.exists("U1")

    def test_process_expired_deletes_even_if_revoke_fails(self, service, role_actuator, clock, store):
        service.add_subscription("U1", 1)
        role_actuator.revoke_role.side_effect = RoleActuationError("gone")
        clock.advance_time(days=31)

        assert service.process_expired() == [("U1", "role-default")]
        assert not store.exists("U1")

    def test_process_warnings_uses_dispatcher(self, service, dispatcher, clock, store):
        service.add_subscription("U1", 1)
        clock.advance_time(days=29)

        results = service.process_warnings()

        assert results == {"warn_1day": 1, "warn_30min": 0}
        kind, record = dispatcher.send_warning.call_args.args
        assert kind is NotificationKind.WARN_1DAY
        assert record.subscriber_id == "U1"
        assert store.get_by_subscriber("U1").notified_1day is True

    def test_undelivered_warning_not_latched(self, service, dispatcher, clock, store):
        dispatcher.send_warning.return_value = False
        service.add_subscription("U1", 1)
        clock.advance_time(days=29, hours=23, minutes=30)

        assert service.process_warnings() == {"warn_1day": 0, "warn_30min": 0}
        assert store.get_by_subscriber("U1").notified_30min is False


class TestReads:
    def test_statistics_and_listing(self, service, clock):
        service.add_subscription("U1", 1)
        service.add_subscription("U2", 2)
        clock.advance_time(days=31)

        stats = service.get_statistics()

        assert (stats.total, stats.active, stats.expired) == (2, 1, 1)
        assert [r.subscriber_id for r in service.list_active()] == ["U2"]
        assert service.get_status("U1").expires_at < clock.now()
        assert service.clock is clock

    def test_time_left_after_partial_month(self, service, clock):
        result = service.add_subscription("U1", 1)
        clock.advance_time(days=10)

        assert result.record.expires_at - clock.now() == timedelta(days=20)
