"""Tests for the role-scoped visibility filter."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

from advance_tracker.models import Advance, Expense, Project, User
from advance_tracker.services.visibility import filter_visible


def _user(role, manager=None, root=None, name="user"):
    return User(
        user_id=uuid4(),
        name=name,
        email=f"{uuid4().hex}@example.com",
        role=role,
        manager_id=manager.user_id if manager else None,
        root_admin_id=root.user_id if root else None,
    )


def _project(owner, status="ACTIVE"):
    return Project(
        project_id=uuid4(), name="P", location="L", manager_id=owner.user_id, status=status
    )


def _advance(project, holder):
    return Advance(
        advance_id=uuid4(),
        project_id=project.project_id,
        user_id=holder.user_id,
        amount=Decimal("100"),
        remaining_amount=Decimal("100"),
        description="float",
        status="OPEN",
        date=date.today(),
    )


def _expense(advance, owner):
    return Expense(
        expense_id=uuid4(),
        advance_id=advance.advance_id,
        user_id=owner.user_id,
        amount=Decimal("10"),
        additional_amount=Decimal("0"),
        description="fuel",
        date=date.today(),
        status="PENDING",
    )


class _World:
    """Two organizations with a small hierarchy each."""

    def __init__(self):
        self.admin = _user("ADMIN", name="A")
        self.engineer = _user("ENGINEER", self.admin, self.admin, name="E1")
        self.other_engineer = _user("ENGINEER", self.admin, self.admin, name="E2")
        self.tech = _user("TECHNICIAN", self.engineer, self.admin, name="T1")
        self.other_tech = _user("TECHNICIAN", self.other_engineer, self.admin, name="T2")

        self.rival_admin = _user("ADMIN", name="B")
        self.rival_engineer = _user("ENGINEER", self.rival_admin, self.rival_admin, name="RE")

        self.project = _project(self.admin)
        self.archived = _project(self.admin, status="ARCHIVED")
        self.rival_project = _project(self.rival_admin)

        self.eng_advance = _advance(self.project, self.engineer)
        self.tech_advance = _advance(self.project, self.tech)
        self.other_tech_advance = _advance(self.project, self.other_tech)
        self.rival_advance = _advance(self.rival_project, self.rival_engineer)

        self.tech_expense = _expense(self.tech_advance, self.tech)
        self.rival_expense = _expense(self.rival_advance, self.rival_engineer)

    @property
    def users(self):
        return [
            self.admin,
            self.engineer,
            self.other_engineer,
            self.tech,
            self.other_tech,
            self.rival_admin,
            self.rival_engineer,
        ]

    @property
    def projects(self):
        return [self.project, self.archived, self.rival_project]

    @property
    def advances(self):
        return [self.eng_advance, self.tech_advance, self.other_tech_advance, self.rival_advance]

    @property
    def expenses(self):
        return [self.tech_expense, self.rival_expense]

    def scope(self, requester, **kwargs):
        return filter_visible(
            requester, self.users, self.projects, self.advances, self.expenses, **kwargs
        )


class TestProjectVisibility:
    def test_admin_sees_owned_projects_including_archived(self):
        world = _World()
        scope = world.scope(world.admin)
        assert {p.project_id for p in scope.projects} == {
            world.project.project_id,
            world.archived.project_id,
        }

    def test_admin_sees_all_when_relaxed(self):
        world = _World()
        scope = world.scope(world.admin, admin_sees_all_projects=True)
        assert len(scope.projects) == 3

    def test_non_admin_sees_only_active_tenant_projects(self):
        world = _World()
        scope = world.scope(world.tech)
        assert [p.project_id for p in scope.projects] == [world.project.project_id]


class TestUserVisibility:
    def test_admin_sees_whole_tenant(self):
        world = _World()
        scope = world.scope(world.admin)
        assert {u.name for u in scope.users} == {"A", "E1", "E2", "T1", "T2"}
        assert "A" not in {u.name for u in scope.team}

    def test_engineer_sees_self_and_own_technicians(self):
        world = _World()
        scope = world.scope(world.engineer)
        assert {u.name for u in scope.users} == {"E1", "T1"}

    def test_technician_sees_only_self(self):
        world = _World()
        scope = world.scope(world.tech)
        assert [u.name for u in scope.users] == ["T1"]
        assert scope.team == []


class TestAdvanceVisibility:
    def test_admin_sees_every_advance_on_visible_projects(self):
        world = _World()
        scope = world.scope(world.admin)
        assert scope.advance_ids == {
            world.eng_advance.advance_id,
            world.tech_advance.advance_id,
            world.other_tech_advance.advance_id,
        }

    def test_engineer_sees_own_and_subordinates(self):
        world = _World()
        scope = world.scope(world.engineer)
        assert scope.advance_ids == {
            world.eng_advance.advance_id,
            world.tech_advance.advance_id,
        }

    def test_technician_sees_own(self):
        world = _World()
        scope = world.scope(world.tech)
        assert scope.advance_ids == {world.tech_advance.advance_id}
        assert scope.can_see_expense(world.tech_expense.expense_id)

    def test_missing_holder_fails_closed(self):
        world = _World()
        ghost = _user("TECHNICIAN", world.engineer, world.admin)
        orphan = _advance(world.project, ghost)
        scope = filter_visible(
            world.engineer, world.users, world.projects, [orphan], []
        )
        assert scope.advances == []

    def test_cross_tenant_engineer_sees_nothing_of_other_tenant(self):
        world = _World()
        scope = world.scope(world.rival_engineer)
        assert not scope.can_see_project(world.project.project_id)
        assert not scope.can_see_advance(world.tech_advance.advance_id)
        assert not scope.can_see_expense(world.tech_expense.expense_id)
        assert scope.can_see_advance(world.rival_advance.advance_id)

    def test_expenses_follow_advances(self):
        world = _World()
        scope = world.scope(world.other_engineer)
        assert scope.expenses == []
