"""
Request lifecycle tests.

Covers the state machine, actor/scope checks, stale-state races and the
notifications emitted on each transition.
"""

import pytest
from sqlalchemy import text
from portal.errors import InvalidTransition, NotFoundError, PermissionDeniedError, ValidationError
from portal.models import Request
from portal.services import lifecycle_service, request_service
from portal.services.notification_service import KIND_DISPATCHED, KIND_MANAGER_ALERT


@pytest.fixture
def pending(db_session, employee, hoodie, laptop):
    return request_service.submit_request(employee.id, [
        {"item_id": hoodie.id, "quantity": 2, "size": "M"},
        {"item_id": laptop.id, "quantity": 1},
    ])


class TestStateMachine:
    @pytest.mark.parametrize("source, target, allowed", [
        ("pending", "approved", True),
        ("pending", "rejected", True),
        ("approved", "dispatched", True),
        ("pending", "dispatched", False),
        ("approved", "rejected", False),
        ("approved", "approved", False),
        ("rejected", "approved", False),
        ("dispatched", "approved", False),
        ("dispatched", "pending", False),
    ])
    def test_can_transition(self, source, target, allowed):
        assert lifecycle_service.can_transition(source, target) is allowed

    def test_unknown_status(self):
        with pytest.raises(ValidationError):
            lifecycle_service.can_transition("pending", "shipped")

    @pytest.mark.parametrize("target, role", [
        ("approved", "manager"),
        ("rejected", "manager"),
        ("dispatched", "admin"),
    ])
    def test_actor_role_for(self, target, role):
        assert lifecycle_service.actor_role_for(target) == role

    def test_no_action_leads_back_to_pending(self):
        with pytest.raises(InvalidTransition):
            lifecycle_service.actor_role_for("pending")

    def test_get_transition_reports_current_status(self):
        with pytest.raises(InvalidTransition) as exc_info:
            lifecycle_service.get_transition("dispatched", "approved")
        assert exc_info.value.current_status == "dispatched"


class TestApprove:
    def test_approve(self, db_session, pending, manager):
        req = lifecycle_service.approve_request(pending.id, manager=manager)

        assert req.status == "approved"
        assert req.approved_by == manager.id
        assert req.approved_at is not None

    def test_double_approve_is_rejected_without_second_side_effect(self, db_session, pending, manager, outbox):
        lifecycle_service.approve_request(pending.id, manager=manager)
        sent_before = len(outbox.sent)

        with pytest.raises(InvalidTransition) as exc_info:
            lifecycle_service.approve_request(pending.id, manager=manager)

        assert exc_info.value.current_status == "approved"
        assert len(outbox.sent) == sent_before

    def test_manager_outside_scope_sees_not_found(self, db_session, pending, other_manager):
        with pytest.raises(NotFoundError):
            lifecycle_service.approve_request(pending.id, manager=other_manager)

        assert request_service.get_request(pending.id).status == "pending"

    def test_admin_cannot_approve(self, db_session, pending, admin):
        with pytest.raises(PermissionDeniedError):
            lifecycle_service.approve_request(pending.id, manager=admin)

    def test_unknown_request(self, db_session, manager):
        with pytest.raises(NotFoundError):
            lifecycle_service.approve_request(9999, manager=manager)

    def test_lost_race_is_invalid_transition(self, db_session, pending, manager, outbox, monkeypatch):
        """Another actor changes the status between our read and our write."""
        real_cas = lifecycle_service.compare_and_swap

        def racing_cas(model, **kwargs):
            db_session.execute(
                text("UPDATE requests SET status = 'rejected' WHERE id = :id"),
                {"id": kwargs["row_id"]},
            )
            return real_cas(model, **kwargs)

        monkeypatch.setattr(lifecycle_service, "compare_and_swap", racing_cas)
        outbox.clear()

        with pytest.raises(InvalidTransition) as exc_info:
            lifecycle_service.approve_request(pending.id, manager=manager)

        assert exc_info.value.current_status == "rejected"
        assert outbox.sent == []


    def test_employee_cannot_approve(self, db_session, pending, employee):
        with pytest.raises(PermissionDeniedError):
            lifecycle_service.approve_request(pending.id, manager=employee)
        assert request_service.get_request(pending.id).status == "pending"


class TestReject:
    def test_reject_stores_reason(self, db_session, pending, manager):
        req = lifecycle_service.reject_request(pending.id, manager=manager, reason="  Budget freeze  ")

        assert req.status == "rejected"
        assert req.rejection_reason == "Budget freeze"
        assert req.rejected_by == manager.id
        assert req.rejected_at is not None

    @pytest.mark.parametrize("reason", [None, "", "   "])
    def test_reason_required(self, db_session, pending, manager, reason):
        with pytest.raises(ValidationError, match="reason is required"):
            lifecycle_service.reject_request(pending.id, manager=manager, reason=reason)
        assert request_service.get_request(pending.id).status == "pending"

    def test_cannot_reject_approved(self, db_session, pending, manager):
        lifecycle_service.approve_request(pending.id, manager=manager)
        with pytest.raises(InvalidTransition):
            lifecycle_service.reject_request(pending.id, manager=manager, reason="Changed my mind")

    def test_cannot_approve_rejected(self, db_session, pending, manager):
        lifecycle_service.reject_request(pending.id, manager=manager, reason="No budget")
        with pytest.raises(InvalidTransition):
            lifecycle_service.approve_request(pending.id, manager=manager)


class TestDispatch:
    def test_pending_cannot_be_dispatched(self, db_session, pending, admin):
        with pytest.raises(InvalidTransition) as exc_info:
            lifecycle_service.dispatch_request(pending.id, admin=admin)

        assert exc_info.value.current_status == "pending"
        assert request_service.get_request(pending.id).status == "pending"

    def test_dispatch_notifies_employee(self, db_session, pending, manager, admin, employee, outbox):
        lifecycle_service.approve_request(pending.id, manager=manager)

        req = lifecycle_service.dispatch_request(pending.id, admin=admin)

        assert req.status == "dispatched"
        assert req.dispatched_by == admin.id
        assert req.dispatched_at is not None

        sent = outbox.of_kind(KIND_DISPATCHED)
        assert len(sent) == 1
        assert sent[0].recipient == employee.email
        assert len(sent[0].payload["items"]) == 2

    def test_dispatch_does_not_touch_stock(self, db_session, pending, manager, admin, hoodie, laptop):
        lifecycle_service.approve_request(pending.id, manager=manager)
        lifecycle_service.dispatch_request(pending.id, admin=admin)

        db_session.expire_all()
        assert hoodie.stock_balance == 10
        assert laptop.stock_balance == 3

    def test_double_dispatch(self, db_session, pending, manager, admin, outbox):
        lifecycle_service.approve_request(pending.id, manager=manager)
        lifecycle_service.dispatch_request(pending.id, admin=admin)

        with pytest.raises(InvalidTransition):
            lifecycle_service.dispatch_request(pending.id, admin=admin)

        assert len(outbox.of_kind(KIND_DISPATCHED)) == 1

    def test_manager_cannot_dispatch(self, db_session, pending, manager):
        lifecycle_service.approve_request(pending.id, manager=manager)
        with pytest.raises(PermissionDeniedError):
            lifecycle_service.dispatch_request(pending.id, admin=manager)

    def test_costs_editable_after_dispatch(self, db_session, pending, manager, admin):
        lifecycle_service.approve_request(pending.id, manager=manager)
        lifecycle_service.dispatch_request(pending.id, admin=admin)

        request_service.annotate_costs(pending.id, shipping_cost=12)

        req = request_service.get_request(pending.id)
        assert float(request_service.display_total(req)) == 852.0

    def test_full_lifecycle_sends_one_alert_and_one_dispatch(self, db_session, pending, manager, admin, outbox):
        lifecycle_service.approve_request(pending.id, manager=manager)
        lifecycle_service.dispatch_request(pending.id, admin=admin)

        assert [n.kind for n in outbox.sent] == [KIND_MANAGER_ALERT, KIND_DISPATCHED]
        assert Request.query.filter_by(status="dispatched").count() == 1
