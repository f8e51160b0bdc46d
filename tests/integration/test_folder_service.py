"""
Integration tests for the folder tree.
"""

import pytest

from app.core.exceptions import AuthorizationError, ResourceNotFoundError, ValidationError
from app.features.folders.service import DUPLICATE_NAME_MESSAGE, folder_service
from app.models import File, FileStatus, Folder, FolderStatus
from app.schemas.folder import FolderCreate
from tests.factories import FileFactory, FolderFactory


@pytest.mark.integration
class TestCreateFolder:
    async def test_create_top_level(self, db_session, member):
        folder = await folder_service.create(db_session, member, FolderCreate(name="Contracts"))

        assert folder.organization_id == member.organization_id
        assert folder.parent_id is None
        assert folder.created_by == member.id

    async def test_create_nested(self, db_session, member, organization):
        parent = await FolderFactory.create(db_session, organization, name="Legal")

        child = await folder_service.create(
            db_session, member, FolderCreate(name="2024", parent_id=parent.id)
        )

        assert child.parent_id == parent.id

    async def test_names_compare_case_insensitively(self, db_session, member, organization):
        await FolderFactory.create(db_session, organization, name="Invoices")

        with pytest.raises(ValidationError) as exc_info:
            await folder_service.create(db_session, member, FolderCreate(name="INVOICES"))
        assert exc_info.value.message == DUPLICATE_NAME_MESSAGE

    async def test_same_name_under_other_parent(self, db_session, member, organization):
        await FolderFactory.create(db_session, organization, name="Archive")
        parent = await FolderFactory.create(db_session, organization, name="Projects")

        folder = await folder_service.create(
            db_session, member, FolderCreate(name="Archive", parent_id=parent.id)
        )
        assert folder.parent_id == parent.id

    async def test_parent_in_other_organization(self, db_session, member, other_organization):
        foreign = await FolderFactory.create(db_session, other_organization)

        with pytest.raises(ValidationError) as exc_info:
            await folder_service.create(
                db_session, member, FolderCreate(name="Sneaky", parent_id=foreign.id)
            )
        assert exc_info.value.message == "Invalid parent folder"


@pytest.mark.integration
class TestListFolders:
    async def test_one_level_with_file_counts(self, db_session, member, organization):
        top = await FolderFactory.create(db_session, organization, name="Alpha")
        await FolderFactory.create(db_session, organization, name="Beta")
        await FolderFactory.create(db_session, organization, name="Nested", parent_id=top.id)
        await FileFactory.create(db_session, organization, member, folder_id=top.id)
        await FileFactory.create(db_session, organization, member, folder_id=top.id)
        await FileFactory.create(
            db_session, organization, member, folder_id=top.id, status=FileStatus.DELETED.value
        )

        items = await folder_service.list_folders(db_session, member)

        assert [(f.name, f.file_count) for f in items] == [("Alpha", 2), ("Beta", 0)]

    async def test_children(self, db_session, member, organization):
        top = await FolderFactory.create(db_session, organization, name="Alpha")
        await FolderFactory.create(db_session, organization, name="Child", parent_id=top.id)

        items = await folder_service.list_folders(db_session, member, parent_id=top.id)

        assert [f.name for f in items] == ["Child"]

    async def test_search_spans_tree_and_escapes_wildcards(self, db_session, member, organization):
        top = await FolderFactory.create(db_session, organization, name="Reports")
        await FolderFactory.create(db_session, organization, name="Q1_reports", parent_id=top.id)
        await FolderFactory.create(db_session, organization, name="Q1 summary")

        items = await folder_service.list_folders(db_session, member, q="q1_")

        assert [f.name for f in items] == ["Q1_reports"]

    async def test_other_organization_hidden(self, db_session, member, other_organization):
        await FolderFactory.create(db_session, other_organization, name="Secret")

        assert await folder_service.list_folders(db_session, member) == []


@pytest.mark.integration
class TestModifyFolder:
    async def test_member_cannot_rename_others_folder(self, db_session, member, org_admin, organization):
        folder = await FolderFactory.create(db_session, organization, created_by=org_admin.id)

        with pytest.raises(AuthorizationError):
            await folder_service.rename(db_session, member, folder.id, "Mine")

    async def test_admin_renames_any(self, db_session, member, org_admin, organization):
        folder = await FolderFactory.create(db_session, organization, created_by=member.id)

        renamed = await folder_service.rename(db_session, org_admin, folder.id, "Renamed")
        assert renamed.name == "Renamed"

    async def test_move_into_descendant_rejected(self, db_session, org_admin, organization):
        root = await FolderFactory.create(db_session, organization, name="Root")
        child = await FolderFactory.create(db_session, organization, name="Child", parent_id=root.id)
        grandchild = await FolderFactory.create(
            db_session, organization, name="Grandchild", parent_id=child.id
        )

        for target in (root.id, grandchild.id):
            with pytest.raises(ValidationError) as exc_info:
                await folder_service.move(db_session, org_admin, root.id, target)
            assert "itself or one of its subfolders" in exc_info.value.message

    async def test_move_to_root(self, db_session, org_admin, organization):
        parent = await FolderFactory.create(db_session, organization, name="Parent")
        child = await FolderFactory.create(db_session, organization, name="Child", parent_id=parent.id)

        moved = await folder_service.move(db_session, org_admin, child.id, None)
        assert moved.parent_id is None

    async def test_get_foreign_folder(self, db_session, member, other_organization):
        folder = await FolderFactory.create(db_session, other_organization)

        with pytest.raises(AuthorizationError):
            await folder_service.get_for(db_session, member, folder.id)


@pytest.mark.integration
class TestDeleteFolder:
    async def test_empty_folder_is_removed(self, db_session, org_admin, organization):
        folder = await FolderFactory.create(db_session, organization)
        folder_id = folder.id

        assert await folder_service.delete(db_session, org_admin, folder_id) is True
        await db_session.commit()

        assert await db_session.get(Folder, folder_id) is None

    async def test_non_empty_folder_is_trashed_with_subtree(self, db_session, org_admin, member, organization):
        top = await FolderFactory.create(db_session, organization, name="Top")
        sub = await FolderFactory.create(db_session, organization, name="Sub", parent_id=top.id)
        inner = await FileFactory.create(db_session, organization, member, folder_id=sub.id)
        outside = await FileFactory.create(db_session, organization, member)

        assert await folder_service.delete(db_session, org_admin, top.id) is False
        await db_session.commit()

        for folder_id in (top.id, sub.id):
            folder = await db_session.get(Folder, folder_id)
            await db_session.refresh(folder)
            assert folder.status == FolderStatus.DELETED.value

        stored_inner = await db_session.get(File, inner.id)
        await db_session.refresh(stored_inner)
        assert stored_inner.status == FileStatus.DELETED.value
        assert stored_inner.deleted_by == org_admin.id

        stored_outside = await db_session.get(File, outside.id)
        await db_session.refresh(stored_outside)
        assert stored_outside.status == FileStatus.ACTIVE.value

    async def test_member_cannot_trash_other_users_files(
        self, db_session, member, org_admin, organization
    ):
        folder = await FolderFactory.create(db_session, organization, created_by=member.id)
        admin_file = await FileFactory.create(db_session, organization, org_admin, folder_id=folder.id)

        with pytest.raises(AuthorizationError):
            await folder_service.delete(db_session, member, folder.id)
        await db_session.rollback()

        stored_file = await db_session.get(File, admin_file.id)
        await db_session.refresh(stored_file)
        assert stored_file.status == FileStatus.ACTIVE.value
        stored_folder = await db_session.get(Folder, folder.id)
        await db_session.refresh(stored_folder)
        assert stored_folder.status == FolderStatus.ACTIVE.value

    async def test_member_trashes_folder_with_own_files(self, db_session, member, organization):
        folder = await FolderFactory.create(db_session, organization, created_by=member.id)
        own = await FileFactory.create(db_session, organization, member, folder_id=folder.id)

        assert await folder_service.delete(db_session, member, folder.id) is False
        await db_session.commit()

        stored = await db_session.get(File, own.id)
        await db_session.refresh(stored)
        assert stored.status == FileStatus.DELETED.value
        assert stored.deleted_by == member.id

    async def test_deleted_folder_is_missing(self, db_session, org_admin, organization):
        folder = await FolderFactory.create(
            db_session, organization, status=FolderStatus.DELETED.value
        )

        with pytest.raises(ResourceNotFoundError):
            await folder_service.delete(db_session, org_admin, folder.id)
