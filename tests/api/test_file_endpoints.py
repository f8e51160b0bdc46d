"""
API tests for file endpoints.
"""

from pathlib import Path

import pytest
from httpx import AsyncClient

from app.core.quota import QUOTA_EXCEEDED_MESSAGE
from app.models import FileStatus
from tests.factories import FileFactory, FolderFactory, OrganizationFactory, UserFactory


def blobs(upload_dir: Path) -> list[Path]:
    return [p for p in upload_dir.rglob("*") if p.is_file()]


@pytest.mark.api
class TestUpload:
    """Test multipart upload."""

    async def test_upload(self, member_client: AsyncClient, member, mock_storage):
        response = await member_client.post(
            "/api/v1/files/upload",
            files={"file": ("notes.txt", b"hello world", "text/plain")},
            data={"description": "Meeting notes"},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "File uploaded successfully"

        data = body["data"]
        assert data["name"] == "notes.txt"
        assert data["file_size"] == 11
        assert data["file_type"] == "txt"
        assert data["uploaded_by"] == member.id
        assert data["organization_id"] == member.organization_id
        assert "storage_path" not in data
        assert len(blobs(mock_storage)) == 1

    async def test_upload_into_folder(self, member_client: AsyncClient, db_session, organization):
        folder = await FolderFactory.create(db_session, organization, name="Invoices")

        response = await member_client.post(
            "/api/v1/files/upload",
            files={"file": ("march.pdf", b"%PDF-1.4", "application/pdf")},
            data={"folder_id": folder.id, "name": "March invoice.pdf"},
        )

        assert response.status_code == 201
        assert response.json()["data"]["folder_id"] == folder.id
        assert response.json()["data"]["name"] == "March invoice.pdf"

    async def test_disallowed_type(self, member_client: AsyncClient, mock_storage):
        response = await member_client.post(
            "/api/v1/files/upload",
            files={"file": ("run.exe", b"MZ", "application/octet-stream")},
        )

        assert response.status_code == 400
        assert response.json()["message"].startswith("File type not allowed")
        assert blobs(mock_storage) == []

    async def test_over_quota_removes_blob(self, client: AsyncClient, db_session, auth_headers, mock_storage):
        org = await OrganizationFactory.create(db_session, storage_quota=0)
        user = await UserFactory.create(db_session, org)
        headers = auth_headers(user)

        response = await client.post(
            "/api/v1/files/upload",
            files={"file": ("big.txt", b"x" * 64, "text/plain")},
            headers=headers,
        )

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["message"] == QUOTA_EXCEEDED_MESSAGE
        assert blobs(mock_storage) == []

        listing = await client.get("/api/v1/files/", headers=headers)
        assert listing.json()["data"]["pagination"]["total"] == 0

    async def test_requires_authentication(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/files/upload",
            files={"file": ("notes.txt", b"hi", "text/plain")},
        )

        assert response.status_code == 401


@pytest.mark.api
class TestReadFiles:
    async def test_list_is_scoped_to_organization(
        self, member_client: AsyncClient, db_session, organization, other_organization, member
    ):
        mine = await FileFactory.create(db_session, organization, member)
        await FileFactory.create(db_session, other_organization)

        response = await member_client.get("/api/v1/files/")

        assert response.status_code == 200
        data = response.json()["data"]
        assert [item["id"] for item in data["items"]] == [mine.id]
        assert data["pagination"] == {"page": 1, "limit": 20, "total": 1, "pages": 1}

    async def test_cross_organization_access(self, other_member_client: AsyncClient, db_session, organization, member):
        file = await FileFactory.create(db_session, organization, member)

        response = await other_member_client.get(f"/api/v1/files/{file.id}")

        assert response.status_code == 403
        assert response.json()["success"] is False

    async def test_missing_file(self, member_client: AsyncClient):
        response = await member_client.get("/api/v1/files/does-not-exist")

        assert response.status_code == 404
        assert response.json()["message"] == "File not found"

    async def test_download(self, member_client: AsyncClient, db_session, organization, member):
        file = await FileFactory.create(
            db_session, organization, member, content=b"report body", original_name="report.txt"
        )

        response = await member_client.get(f"/api/v1/files/{file.id}/download")

        assert response.status_code == 200
        assert response.content == b"report body"
        assert "attachment" in response.headers["content-disposition"]
        assert "report.txt" in response.headers["content-disposition"]

    async def test_preview_is_inline(self, member_client: AsyncClient, db_session, organization, member):
        file = await FileFactory.create(
            db_session, organization, member, content=b"preview", original_name="preview.txt"
        )

        response = await member_client.get(f"/api/v1/files/{file.id}/preview")

        assert response.status_code == 200
        assert response.headers["content-disposition"].startswith("inline")

    async def test_stats(self, member_client: AsyncClient, db_session, organization, member):
        await FileFactory.create(db_session, organization, member, file_size=100)
        await FileFactory.create(db_session, organization, member, file_size=50, original_name="a.txt")

        response = await member_client.get("/api/v1/files/stats/overview")

        data = response.json()["data"]
        assert data["total_files"] == 2
        assert data["total_size"] == 150
        assert data["quota"]["used_bytes"] == 150


@pytest.mark.api
class TestTrash:
    async def test_delete_restore_cycle(self, member_client: AsyncClient, db_session, organization, member):
        file = await FileFactory.create(db_session, organization, member)

        deleted = await member_client.delete(f"/api/v1/files/{file.id}")
        assert deleted.status_code == 200
        assert deleted.json()["message"] == "File moved to trash"

        trash = await member_client.get("/api/v1/files/trash/list")
        items = trash.json()["data"]["items"]
        assert [item["id"] for item in items] == [file.id]
        assert items[0]["deleted_by"] == member.id

        assert (await member_client.get(f"/api/v1/files/{file.id}")).status_code == 404

        restored = await member_client.post(f"/api/v1/files/{file.id}/restore")
        assert restored.status_code == 200
        assert restored.json()["data"]["status"] == FileStatus.ACTIVE.value

    async def test_permanent_delete(self, member_client: AsyncClient, db_session, organization, member, mock_storage):
        file = await FileFactory.create(db_session, organization, member, content=b"bytes")
        await member_client.delete(f"/api/v1/files/{file.id}")

        response = await member_client.delete(f"/api/v1/files/{file.id}/permanent")

        assert response.status_code == 200
        assert response.json()["message"] == "File permanently deleted"
        assert blobs(mock_storage) == []

    async def test_cleanup_requires_platform_owner(self, admin_client: AsyncClient):
        response = await admin_client.post("/api/v1/files/cleanup/old-trash")

        assert response.status_code == 403

    async def test_cleanup(self, owner_client: AsyncClient):
        response = await owner_client.post("/api/v1/files/cleanup/old-trash")

        assert response.status_code == 200
        assert response.json()["data"] == {"purged_count": 0, "freed_bytes": 0, "failed_count": 0}


@pytest.mark.api
class TestUpdateFile:
    async def test_rename(self, member_client: AsyncClient, db_session, organization, member):
        file = await FileFactory.create(db_session, organization, member)

        response = await member_client.put(
            f"/api/v1/files/{file.id}/rename", json={"name": "renamed.pdf"}
        )

        assert response.status_code == 200
        assert response.json()["data"]["name"] == "renamed.pdf"

    async def test_move(self, member_client: AsyncClient, db_session, organization, member):
        file = await FileFactory.create(db_session, organization, member)
        folder = await FolderFactory.create(db_session, organization)

        response = await member_client.put(
            f"/api/v1/files/{file.id}/move", json={"folder_id": folder.id}
        )

        assert response.status_code == 200
        assert response.json()["data"]["folder_id"] == folder.id

    async def test_member_cannot_edit_others_file(self, member_client: AsyncClient, db_session, organization, org_admin):
        file = await FileFactory.create(db_session, organization, org_admin)

        response = await member_client.put(
            f"/api/v1/files/{file.id}", json={"description": "mine now"}
        )

        assert response.status_code == 403


@pytest.mark.api
class TestVersionEndpoints:
    async def test_upload_list_keep_download(self, member_client: AsyncClient, member, mock_storage):
        uploaded = await member_client.post(
            "/api/v1/files/upload", files={"file": ("plan.txt", b"draft", "text/plain")}
        )
        file_id = uploaded.json()["data"]["id"]

        response = await member_client.post(
            f"/api/v1/files/{file_id}/versions",
            files={"file": ("plan.txt", b"final plan", "text/plain")},
            data={"version_note": "Approved"},
        )
        assert response.status_code == 201
        assert response.json()["message"] == "New version uploaded successfully"
        assert response.json()["data"]["current_version"] == 2
        assert response.json()["data"]["file_size"] == 10

        history = await member_client.get(f"/api/v1/files/{file_id}/versions")
        data = history.json()["data"]
        assert data["current"]["version_number"] == 2
        assert [v["version_note"] for v in data["versions"]] == ["Approved"]
        version_id = data["versions"][0]["id"]

        kept = await member_client.put(f"/api/v1/files/{file_id}/versions/{version_id}/keep")
        assert kept.status_code == 200
        assert kept.json()["data"]["keep_forever"] is True

        download = await member_client.get(f"/api/v1/files/{file_id}/versions/{version_id}/download")
        assert download.status_code == 200
        assert download.content == b"draft"
        assert len(blobs(mock_storage)) == 2

    async def test_member_cannot_version_admin_file(self, member_client: AsyncClient, db_session, organization, org_admin):
        file = await FileFactory.create(db_session, organization, org_admin)

        response = await member_client.post(
            f"/api/v1/files/{file.id}/versions",
            files={"file": ("new.pdf", b"%PDF-1.4", "application/pdf")},
        )

        assert response.status_code == 403


@pytest.mark.api
class TestShareEndpoints:
    async def test_edit_share_then_revoke(
        self, member_client: AsyncClient, client: AsyncClient, db_session, organization, member, auth_headers
    ):
        colleague = await UserFactory.create(db_session, organization)
        colleague_headers = auth_headers(colleague)
        file = await FileFactory.create(db_session, organization, member)

        shared = await member_client.post(
            f"/api/v1/files/{file.id}/share",
            json={"email": colleague.email, "permission": "edit"},
        )
        assert shared.status_code == 201
        assert shared.json()["message"] == "File shared successfully"
        share_id = shared.json()["data"]["id"]

        incoming = await client.get("/api/v1/files/shared-with-me", headers=colleague_headers)
        items = incoming.json()["data"]["items"]
        assert [(i["id"], i["permission"]) for i in items] == [(file.id, "edit")]

        renamed = await client.put(
            f"/api/v1/files/{file.id}/rename", json={"name": "shared.pdf"}, headers=colleague_headers
        )
        assert renamed.status_code == 200

        listing = await member_client.get(f"/api/v1/files/{file.id}/shares")
        assert [s["shared_with_email"] for s in listing.json()["data"]] == [colleague.email]

        revoked = await member_client.delete(f"/api/v1/files/{file.id}/shares/{share_id}")
        assert revoked.status_code == 200

        denied = await client.put(
            f"/api/v1/files/{file.id}/rename", json={"name": "again.pdf"}, headers=colleague_headers
        )
        assert denied.status_code == 403

    async def test_share_outside_organization(
        self, member_client: AsyncClient, db_session, organization, member, other_member
    ):
        file = await FileFactory.create(db_session, organization, member)

        response = await member_client.post(
            f"/api/v1/files/{file.id}/share", json={"email": other_member.email}
        )

        assert response.status_code == 404
        assert response.json()["message"] == "User not found"

    async def test_invalid_permission(self, member_client: AsyncClient, db_session, organization, member, org_admin):
        file = await FileFactory.create(db_session, organization, member)

        response = await member_client.post(
            f"/api/v1/files/{file.id}/share", json={"email": org_admin.email, "permission": "comment"}
        )

        assert response.status_code == 400


@pytest.mark.api
class TestStarEndpoints:
    async def test_star_and_unstar(self, member_client: AsyncClient, db_session, organization, member):
        file = await FileFactory.create(db_session, organization, member)
        folder = await FolderFactory.create(db_session, organization)

        starred = await member_client.post(f"/api/v1/files/star/file/{file.id}")
        assert starred.json()["message"] == "Item starred"
        assert starred.json()["data"]["starred"] is True
        await member_client.post(f"/api/v1/files/star/folder/{folder.id}")

        listing = await member_client.get("/api/v1/files/starred/list")
        data = listing.json()["data"]
        assert [f["id"] for f in data["files"]] == [file.id]
        assert [f["id"] for f in data["folders"]] == [folder.id]

        unstarred = await member_client.post(f"/api/v1/files/star/file/{file.id}")
        assert unstarred.json()["message"] == "Item unstarred"
        assert unstarred.json()["data"]["starred"] is False

    async def test_unknown_item_type(self, member_client: AsyncClient):
        response = await member_client.post("/api/v1/files/star/album/123")

        assert response.status_code == 400
