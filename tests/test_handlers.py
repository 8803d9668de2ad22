"""
End-to-end tests for the aiohttp routes.
"""
import os

import aiohttp
import pytest
import pytest_asyncio
from aiohttp.test_utils import TestClient, TestServer

from passwall_backup import csv_codec
from passwall_backup.handlers import create_app


@pytest_asyncio.fixture
async def client(seeded_store, config):
    app = create_app(seeded_store, config, migrate_on_startup=False)
    async with TestClient(TestServer(app)) as client:
        yield client


def upload(content: bytes, filename: str = "import.csv", **fields) -> aiohttp.FormData:
    data = aiohttp.FormData()
    for name, value in fields.items():
        data.add_field(name, value)
    data.add_field("file", content, filename=filename, content_type="text/csv")
    return data


class TestImportExport:

    @pytest.mark.asyncio
    async def test_import(self, client, seeded_store, crypto, upload_dir):
        """Test importing a CSV with form-field defaults."""
        resp = await client.post(
            "/api/logins/import",
            data=upload(b"URL,Username,Password\n,,,\n", url="u", username="n", password="p"),
        )
        assert resp.status == 200
        assert await resp.json() == {
            "code": 200,
            "status": "Success",
            "message": "Import finished successfully!",
        }
        row = seeded_store.logins().rows[-1]
        assert (row["url"], row["username"]) == ("u", "n")
        assert crypto.decrypt_field(row["password"]) == "p"
        assert os.listdir(upload_dir) == []

    @pytest.mark.asyncio
    async def test_import_rejects_txt(self, client, seeded_store):
        """Test import rejects txt."""
        resp = await client.post("/api/logins/import", data=upload(b"a,b,c\n", filename="x.txt"))
        assert resp.status == 415
        body = await resp.json()
        assert body == {"code": 415, "status": "Error", "message": ".txt unsupported filetype"}
        assert len(seeded_store.logins().rows) == 3

    @pytest.mark.asyncio
    async def test_import_rejects_non_utf8_default(self, client, seeded_store, upload_dir):
        """Test a non UTF-8 form field gets the error envelope."""
        data = aiohttp.FormData()
        data.add_field("url", b"\xff\xfe", filename="url.txt")
        data.add_field("file", b"URL,Username,Password\nu,n,p\n", filename="a.csv")
        resp = await client.post("/api/logins/import", data=data)
        assert resp.status == 400
        assert await resp.json() == {
            "code": 400, "status": "Error", "message": "field url is not valid text",
        }
        assert len(seeded_store.logins().rows) == 3
        assert os.listdir(upload_dir) == []

    @pytest.mark.asyncio
    async def test_import_malformed_cleans_up(self, client, upload_dir):
        """Test import malformed cleans up."""
        resp = await client.post(
            "/api/logins/import", data=upload(b"URL,Username,Password\nonly-one\n"),
        )
        assert resp.status == 422
        assert "row 2" in (await resp.json())["message"]
        assert os.listdir(upload_dir) == []

    @pytest.mark.asyncio
    async def test_export(self, client):
        """Test exporting logins as a CSV attachment."""
        resp = await client.post("/api/logins/export")
        assert resp.status == 200
        assert resp.content_type == "text/csv"
        assert resp.headers["Content-Disposition"] == "attachment;filename=PassWall.csv"
        records = csv_codec.decode(await resp.read())
        assert [r.password for r in records] == ["hunter2", "p,a\"ss", "line1\nline2"]


class TestBackupRestore:

    @pytest.mark.asyncio
    async def test_backup_list_restore(self, client, seeded_store):
        """Test backup list restore."""
        resp = await client.post("/api/system/backup")
        assert resp.status == 200
        assert (await resp.json())["message"] == "Backup completed successfully!"

        resp = await client.get("/api/system/backup")
        assert resp.status == 200
        listing = await resp.json()
        assert len(listing) == 1
        assert set(listing[0]) == {"name", "createdAt"}

        name = listing[0]["name"][: -len(".bak")]
        resp = await client.post("/api/system/restore", json={"name": name})
        assert resp.status == 200
        assert (await resp.json())["message"] == (
            "Restore from backup completed successfully!"
        )
        assert len(seeded_store.logins().rows) == 6

    @pytest.mark.asyncio
    async def test_list_without_backups(self, client):
        """Test list without backups."""
        resp = await client.get("/api/system/backup")
        assert await resp.json() == []

    @pytest.mark.asyncio
    async def test_restore_invalid_json(self, client):
        """Test restore invalid json."""
        resp = await client.post("/api/system/restore", data=b"{not json")
        assert resp.status == 422
        assert (await resp.json())["message"] == "Invalid json provided"

    @pytest.mark.asyncio
    async def test_restore_missing_name(self, client):
        """Test restore missing name."""
        resp = await client.post("/api/system/restore", json={})
        assert resp.status == 422

    @pytest.mark.asyncio
    async def test_restore_not_found(self, client):
        """Test restore not found."""
        resp = await client.post("/api/system/restore", json={"name": "nope"})
        assert resp.status == 404
        body = await resp.json()
        assert body["code"] == 404
        assert body["status"] == "Error"


@pytest.mark.asyncio
async def test_migrations_run_on_startup(store, config):
    """Test migrations run on startup."""
    store.notes().fail_migrate = True
    app = create_app(store, config)
    async with TestClient(TestServer(app)):
        assert store.logins().migrated
        assert store.tokens().migrated
        assert not store.notes().migrated
