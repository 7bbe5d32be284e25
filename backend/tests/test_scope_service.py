"""
Role-scoped read tests: employee history, manager pending list, dispatch
queue ordering and catalog filtering.
"""

from datetime import datetime

import pytest
from portal.services import lifecycle_service, request_service, scope_service


def _submit(employee, item, *, created_at=None):
    req = request_service.submit_request(employee.id, [{"item_id": item.id}])
    if created_at is not None:
        req.created_at = created_at
    return req


class TestEmployeeRequests:
    def test_own_requests_newest_first(self, db_session, employee, outsider, laptop):
        older = _submit(employee, laptop, created_at=datetime(2024, 1, 1, 9, 0))
        newer = _submit(employee, laptop, created_at=datetime(2024, 1, 5, 9, 0))
        _submit(outsider, laptop)
        db_session.commit()

        rows = scope_service.employee_requests(employee.id)

        assert [r.id for r in rows] == [newer.id, older.id]

    def test_limit(self, db_session, employee, laptop):
        for _ in range(3):
            _submit(employee, laptop)
        assert len(scope_service.employee_requests(employee.id, limit=2)) == 2


class TestManagerPending:
    def test_only_pending_requests_of_reports(self, db_session, employee, outsider, manager, laptop):
        first = _submit(employee, laptop, created_at=datetime(2024, 1, 1))
        second = _submit(employee, laptop, created_at=datetime(2024, 1, 2))
        decided = _submit(employee, laptop, created_at=datetime(2024, 1, 3))
        _submit(outsider, laptop)
        db_session.commit()

        lifecycle_service.approve_request(decided.id, manager=manager)

        rows = scope_service.manager_pending(manager.id)

        assert [r.id for r in rows] == [first.id, second.id]

    def test_manager_without_reports(self, db_session, other_manager):
        assert scope_service.manager_pending(other_manager.id) == []

    def test_report_ids(self, db_session, manager, employee, outsider):
        assert scope_service.report_ids(manager.id) == [employee.id]


class TestDispatchQueue:
    def test_oldest_approval_first(self, db_session, employee, manager, laptop):
        late = _submit(employee, laptop, created_at=datetime(2023, 12, 1))
        early = _submit(employee, laptop, created_at=datetime(2023, 12, 2))
        db_session.commit()

        lifecycle_service.approve_request(late.id, manager=manager)
        lifecycle_service.approve_request(early.id, manager=manager)

        late = request_service.get_request(late.id)
        early = request_service.get_request(early.id)
        late.approved_at = datetime(2024, 1, 3)
        early.approved_at = datetime(2024, 1, 1)
        db_session.commit()

        rows = scope_service.dispatch_queue()

        assert [r.id for r in rows] == [early.id, late.id]

    def test_only_approved_requests(self, db_session, employee, manager, admin, laptop):
        waiting = _submit(employee, laptop)
        approved = _submit(employee, laptop)
        shipped = _submit(employee, laptop)
        db_session.commit()

        lifecycle_service.approve_request(approved.id, manager=manager)
        lifecycle_service.approve_request(shipped.id, manager=manager)
        lifecycle_service.dispatch_request(shipped.id, admin=admin)

        rows = scope_service.dispatch_queue()

        assert [r.id for r in rows] == [approved.id]
        assert waiting.id not in [r.id for r in rows]

    def test_missing_approval_time_falls_back_to_created_at(self, db_session, employee, manager, laptop):
        a = _submit(employee, laptop, created_at=datetime(2024, 1, 2))
        b = _submit(employee, laptop, created_at=datetime(2024, 1, 1))
        db_session.commit()
        lifecycle_service.approve_request(a.id, manager=manager)
        lifecycle_service.approve_request(b.id, manager=manager)

        a = request_service.get_request(a.id)
        b = request_service.get_request(b.id)
        a.approved_at = None
        b.approved_at = datetime(2024, 1, 3)
        db_session.commit()

        assert [r.id for r in scope_service.dispatch_queue()] == [a.id, b.id]


class TestCatalog:
    def test_all_items(self, db_session, hoodie, laptop):
        assert {i.name for i in scope_service.catalog()} == {"Hoodie", "Laptop"}

    @pytest.mark.parametrize("category", ["Uniform", "uniform", "  UNIFORM "])
    def test_filter_is_case_insensitive(self, db_session, hoodie, laptop, category):
        assert [i.name for i in scope_service.catalog(category)] == ["Hoodie"]

    def test_all_means_no_filter(self, db_session, hoodie, laptop):
        assert len(scope_service.catalog("All")) == 2
