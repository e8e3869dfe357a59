"""Tests for approval authority and edit permission."""

from types import SimpleNamespace
from uuid import uuid4

import pytest

from advance_tracker.services.authority import (
    can_approve,
    can_edit_expense,
    can_settle,
    opens_on_creation,
    require_approval_authority,
    require_settlement_authority,
)
from advance_tracker.services.errors import ActionNotPermittedError


def _user(role, manager=None):
    return SimpleNamespace(
        user_id=uuid4(), role=role, manager_id=manager.user_id if manager else None
    )


@pytest.fixture
def team():
    admin = _user("ADMIN")
    engineer = _user("ENGINEER", admin)
    other_engineer = _user("ENGINEER", admin)
    tech = _user("TECHNICIAN", engineer)
    return SimpleNamespace(
        admin=admin, engineer=engineer, other_engineer=other_engineer, tech=tech
    )


class TestCanApprove:
    def test_admin_approves_engineers(self, team):
        assert can_approve(team.admin, team.engineer) is True

    def test_admin_approves_only_directly_managed_technicians(self, team):
        assert can_approve(team.admin, team.tech) is False
        direct = _user("TECHNICIAN", team.admin)
        assert can_approve(team.admin, direct) is True

    def test_engineer_approves_own_technicians(self, team):
        assert can_approve(team.engineer, team.tech) is True
        assert can_approve(team.other_engineer, team.tech) is False

    def test_engineer_cannot_approve_peers(self, team):
        assert can_approve(team.engineer, team.other_engineer) is False

    def test_technician_approves_nobody(self, team):
        assert can_approve(team.tech, team.engineer) is False

    def test_nobody_approves_themselves(self, team):
        for user in (team.admin, team.engineer, team.tech):
            assert can_approve(user, user) is False

    def test_unknown_owner(self, team):
        assert can_approve(team.admin, None) is False

    def test_require_reports_self_approval(self, team):
        with pytest.raises(ActionNotPermittedError) as exc_info:
            require_approval_authority(team.admin, team.admin, "approve_advance")
        assert exc_info.value.reason == "self-approval is not allowed"


class TestCanEditExpense:
    def test_owner_edits_pending(self, team):
        expense = SimpleNamespace(user_id=team.tech.user_id, status="PENDING", is_editable=False)
        assert can_edit_expense(team.tech, expense) is True
        assert can_edit_expense(team.engineer, expense) is False

    def test_approved_needs_unlock(self, team):
        expense = SimpleNamespace(user_id=team.tech.user_id, status="APPROVED", is_editable=False)
        assert can_edit_expense(team.tech, expense) is False
        expense.is_editable = True
        assert can_edit_expense(team.tech, expense) is True

    def test_rejected_is_never_editable(self, team):
        expense = SimpleNamespace(user_id=team.tech.user_id, status="REJECTED", is_editable=True)
        assert can_edit_expense(team.tech, expense) is False


class TestOpensOnCreation:
    def test_admin_issued_advances_open(self, team):
        assert opens_on_creation(team.admin, team.engineer) is True
        assert opens_on_creation(team.admin, team.admin) is True

    def test_engineer_funding_own_technician_opens(self, team):
        assert opens_on_creation(team.engineer, team.tech) is True

    def test_requests_stay_pending(self, team):
        assert opens_on_creation(team.engineer, team.engineer) is False
        assert opens_on_creation(team.tech, team.tech) is False
        assert opens_on_creation(team.other_engineer, team.tech) is False


class TestCanSettle:
    def test_admin_settles_team_advances(self, team):
        assert can_settle(team.admin, SimpleNamespace(user_id=team.tech.user_id))
        assert can_settle(team.admin, SimpleNamespace(user_id=team.engineer.user_id))

    def test_engineer_never_settles(self, team):
        advance = SimpleNamespace(user_id=team.tech.user_id)
        assert not can_settle(team.engineer, advance)
        with pytest.raises(ActionNotPermittedError, match="only an admin"):
            require_settlement_authority(team.engineer, advance)

    def test_admin_cannot_settle_own(self, team):
        advance = SimpleNamespace(user_id=team.admin.user_id)
        assert not can_settle(team.admin, advance)
        with pytest.raises(ActionNotPermittedError, match="your own"):
            require_settlement_authority(team.admin, advance)
