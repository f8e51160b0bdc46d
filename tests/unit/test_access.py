"""
Unit tests for the access control policy.

Users and resources are built in memory; nothing here touches the database.
"""

from types import SimpleNamespace

import pytest

from app.core.access import Action, authorize, enforce, grant_file_access, role_at_least
from app.core.exceptions import AuthorizationError
from app.models import Role, User

ORG_A = "org-a"
ORG_B = "org-b"


def make_user(role: Role, organization_id: str | None = ORG_A, user_id: str = "u-1") -> User:
    return User(
        id=user_id,
        email=f"{user_id}@example.com",
        password_hash="x",
        first_name="Test",
        last_name="User",
        role=role.value,
        organization_id=organization_id,
        status="active",
    )


@pytest.fixture
def owner():
    return make_user(Role.PLATFORM_OWNER, organization_id=None, user_id="owner")


@pytest.fixture
def admin():
    return make_user(Role.ORGANIZATION_ADMIN, user_id="admin")


@pytest.fixture
def member():
    return make_user(Role.MEMBER, user_id="member")


@pytest.mark.unit
class TestRoleRank:
    def test_hierarchy(self, owner, admin, member):
        assert role_at_least(owner, Role.ORGANIZATION_ADMIN)
        assert role_at_least(admin, Role.ORGANIZATION_ADMIN)
        assert not role_at_least(member, Role.ORGANIZATION_ADMIN)
        assert role_at_least(member, "member")


@pytest.mark.unit
class TestOrganizationAccess:
    def test_own_organization(self, member):
        assert authorize(member, Action.ACCESS_ORGANIZATION, ORG_A)

    def test_foreign_organization(self, member):
        decision = authorize(member, Action.ACCESS_ORGANIZATION, ORG_B)

        assert not decision
        assert "Organization access required" in decision.reason

    def test_platform_owner_reaches_everything(self, owner):
        assert authorize(owner, Action.ACCESS_ORGANIZATION, ORG_B)

    def test_resource_with_organization_attribute(self, member):
        folder = SimpleNamespace(organization_id=ORG_B)

        assert not authorize(member, Action.ACCESS_ORGANIZATION, folder)


@pytest.mark.unit
class TestFilePolicies:
    def test_member_reads_org_file(self, member):
        file = SimpleNamespace(organization_id=ORG_A, uploaded_by="someone-else")

        assert authorize(member, Action.ACCESS_FILE, file)
        assert not authorize(member, Action.MODIFY_FILE, file)

    def test_uploader_modifies_own_file(self, member):
        file = SimpleNamespace(organization_id=ORG_A, uploaded_by=member.id)

        assert authorize(member, Action.MODIFY_FILE, file)

    def test_admin_modifies_any_org_file(self, admin):
        file = SimpleNamespace(organization_id=ORG_A, uploaded_by="someone-else")

        assert authorize(admin, Action.MODIFY_FILE, file)

    def test_admin_cannot_touch_foreign_file(self, admin):
        file = SimpleNamespace(organization_id=ORG_B, uploaded_by=admin.id)

        decision = authorize(admin, Action.MODIFY_FILE, file)
        assert not decision
        assert "different organization" in decision.reason

    def test_grant_resolves_relative_path(self, member, tmp_path, monkeypatch):
        from app.config import settings

        monkeypatch.setattr(settings, "upload_dir", str(tmp_path))
        file = SimpleNamespace(organization_id=ORG_A, storage_path="organizations/a/x.pdf")

        grant = grant_file_access(member, file)

        assert grant.file is file
        assert grant.path == tmp_path.resolve() / "organizations/a/x.pdf"

    def test_grant_denied(self, member):
        file = SimpleNamespace(organization_id=ORG_B, storage_path="x.pdf")

        with pytest.raises(AuthorizationError):
            grant_file_access(member, file)


@pytest.mark.unit
class TestFolderPolicy:
    def test_creator_and_admin(self, member, admin):
        folder = SimpleNamespace(organization_id=ORG_A, created_by=member.id)

        assert authorize(member, Action.MODIFY_FOLDER, folder)
        assert authorize(admin, Action.MODIFY_FOLDER, folder)

    def test_other_member(self, member):
        folder = SimpleNamespace(organization_id=ORG_A, created_by="someone-else")

        assert not authorize(member, Action.MODIFY_FOLDER, folder)


@pytest.mark.unit
class TestAdminPolicies:
    def test_admin_actions(self, owner, admin, member):
        assert authorize(owner, Action.ADMIN)
        assert authorize(admin, Action.ADMIN)
        assert not authorize(member, Action.ADMIN)

    def test_platform_action(self, owner, admin):
        assert authorize(owner, Action.PLATFORM)
        assert not authorize(admin, Action.PLATFORM)

    def test_manage_user_stays_in_organization(self, admin):
        same_org = make_user(Role.MEMBER, ORG_A, "m-2")
        other_org = make_user(Role.MEMBER, ORG_B, "m-3")

        assert authorize(admin, Action.MANAGE_USER, same_org)
        assert not authorize(admin, Action.MANAGE_USER, other_org)

    def test_self_or_admin(self, member, admin):
        colleague = make_user(Role.MEMBER, ORG_A, "m-2")

        assert authorize(member, Action.SELF_OR_ADMIN, member)
        assert not authorize(member, Action.SELF_OR_ADMIN, colleague)
        assert authorize(admin, Action.SELF_OR_ADMIN, colleague)


@pytest.mark.unit
class TestReminderPolicy:
    def test_only_owner(self, member, admin, owner):
        reminder = SimpleNamespace(user_id=member.id, organization_id=ORG_A)

        assert authorize(member, Action.OWN_REMINDER, reminder)
        assert not authorize(admin, Action.OWN_REMINDER, reminder)
        assert authorize(owner, Action.OWN_REMINDER, reminder)


@pytest.mark.unit
class TestEnforce:
    def test_raises_with_rule_reason(self, member):
        with pytest.raises(AuthorizationError) as exc_info:
            enforce(member, Action.PLATFORM)

        assert exc_info.value.status_code == 403
        assert "Platform owner" in exc_info.value.message

    def test_custom_message(self, member):
        with pytest.raises(AuthorizationError) as exc_info:
            enforce(member, Action.ADMIN, message="Nope")

        assert exc_info.value.message == "Nope"

    def test_allowed_returns_none(self, admin):
        assert enforce(admin, Action.ADMIN) is None
