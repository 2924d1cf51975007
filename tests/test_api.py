"""HTTP API tests against a temporary SQLite database."""

import pytest
from litestar.testing import AsyncTestClient
from sqlalchemy.ext.asyncio import create_async_engine

from stratum.asgi import create_app
from stratum.config import DatabaseConfig, Settings
from stratum.db.base import Base


@pytest.fixture
async def client(tmp_path):
    url = f"sqlite+aiosqlite:///{tmp_path / 'api.db'}"
    engine = create_async_engine(url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()

    app = create_app(Settings(db=DatabaseConfig(url=url)))
    async with AsyncTestClient(app=app) as client:
        yield client


@pytest.fixture
async def docs(client):
    response = await client.post("/api/v1/collections", json={"name": "Docs"}, headers={"X-Actor": "alice"})
    assert response.status_code == 201
    return response.json()


@pytest.fixture
async def page(client, docs):
    response = await client.post(
        "/api/v1/collections/docs/contents",
        json={"title": "Getting Started", "metadata": {"lang": "en"}},
        headers={"X-Actor": "alice"},
    )
    assert response.status_code == 201
    return response.json()


class TestCollections:
    @pytest.mark.asyncio
    async def test_create_and_show(self, client, docs):
        assert docs["slug"] == "docs"
        assert docs["current_release"] == "Basis"
        assert docs["releases"][0]["created_by"] == "alice"
        assert docs["lock"]["effective"] == {"locked": False, "source": None}

        response = await client.get("/api/v1/collections/docs")
        assert response.status_code == 200
        assert response.json()["name"] == "Docs"

    @pytest.mark.asyncio
    async def test_unknown_collection(self, client):
        response = await client.get("/api/v1/collections/nope")
        assert response.status_code == 404
        assert response.json()["detail"] == "Collection 'nope' not found."

    @pytest.mark.asyncio
    async def test_update(self, client, docs):
        response = await client.patch("/api/v1/collections/docs", json={"description": "Manuals"})
        assert response.status_code == 200
        assert response.json()["description"] == "Manuals"
        assert response.json()["name"] == "Docs"

    @pytest.mark.asyncio
    async def test_duplicate_collection_slug(self, client, docs):
        response = await client.post("/api/v1/collections", json={"name": "Docs"})
        assert response.status_code == 409


class TestContents:
    @pytest.mark.asyncio
    async def test_create_content(self, page):
        assert page["slug"] == "getting-started"
        assert page["current_version"] == 1
        assert page["status"] == "draft"
        assert page["metadata"] == {"lang": "en"}

    @pytest.mark.asyncio
    async def test_update_and_history(self, client, page):
        url = f"/api/v1/contents/{page['id']}"
        response = await client.patch(url, json={"title": "Start Here"}, headers={"X-Actor": "bob"})
        assert response.status_code == 200
        assert response.json()["current_version"] == 2

        history = (await client.get(f"{url}/versions")).json()
        assert [entry["version"] for entry in history] == [2, 1]
        assert history[0]["created_by"] == "bob"
        assert history[0]["diff_summary"]["title_changed"] is True

    @pytest.mark.asyncio
    async def test_elements_lifecycle(self, client, page):
        url = f"/api/v1/contents/{page['id']}/elements"

        response = await client.post(url, json={"type": "wrapper"})
        assert response.status_code == 201
        wrapper = response.json()["element"]

        response = await client.post(url, json={"type": "text", "data": {"body": "hi"}})
        text = response.json()["element"]

        response = await client.patch(f"{url}/{text['id']}", json={"data": {"body": "hello"}})
        assert response.json()["element"]["data"] == {"body": "hello"}

        response = await client.post(f"{url}/{text['id']}/move", json={"parent_id": wrapper["id"], "order": 0})
        assert response.status_code == 200
        assert response.json()["current_version"] == 5

        content = (await client.get(f"/api/v1/contents/{page['id']}")).json()
        assert content["elements"][0]["children"][0]["id"] == text["id"]

        response = await client.delete(f"{url}/{wrapper['id']}")
        assert response.status_code == 200
        assert response.json()["current_version"] == 6

    @pytest.mark.asyncio
    async def test_invalid_element(self, client, page):
        response = await client.post(f"/api/v1/contents/{page['id']}/elements", json={"type": "video"})
        assert response.status_code == 422
        assert "Unknown element type" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_publish(self, client, page):
        response = await client.post(f"/api/v1/contents/{page['id']}/publish")
        assert response.status_code == 200
        assert response.json()["status"] == "published"
        assert response.json()["published_version_id"] is not None

    @pytest.mark.asyncio
    async def test_delete(self, client, page):
        response = await client.delete(f"/api/v1/contents/{page['id']}")
        assert response.status_code == 204

        response = await client.get(f"/api/v1/contents/{page['id']}")
        assert response.status_code == 404


class TestLocks:
    @pytest.mark.asyncio
    async def test_collection_lock_returns_423(self, client, page):
        response = await client.post(
            "/api/v1/collections/docs/lock",
            params={"reason": "maintenance"},
            headers={"X-Actor": "admin"},
        )
        assert response.status_code == 200
        assert response.json()["lock"]["locked_by"] == "admin"

        response = await client.patch(f"/api/v1/contents/{page['id']}", json={"title": "Blocked"})
        assert response.status_code == 423
        body = response.json()
        assert body["detail"] == "Content cannot be modified because its collection is locked."
        assert body["lock_info"]["source"] == "collection"
        assert body["lock_info"]["lock_reason"] == "maintenance"

        # New content is still accepted
        response = await client.post("/api/v1/collections/docs/contents", json={"title": "Fresh"})
        assert response.status_code == 201

        response = await client.delete("/api/v1/collections/docs/lock")
        assert response.status_code == 200
        response = await client.patch(f"/api/v1/contents/{page['id']}", json={"title": "Unblocked"})
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_element_lock(self, client, page):
        url = f"/api/v1/contents/{page['id']}/elements"
        element = (await client.post(url, json={"type": "text"})).json()["element"]

        response = await client.post(f"{url}/{element['id']}/lock", headers={"X-Actor": "carol"})
        assert response.status_code == 200
        assert response.json()["lock"]["effective"]["source"] == "self"

        response = await client.delete(f"{url}/{element['id']}")
        assert response.status_code == 423
        assert response.json()["lock_info"]["source"] == "self"

        response = await client.delete(f"{url}/{element['id']}/lock")
        assert response.json()["lock"]["is_locked"] is False

    @pytest.mark.asyncio
    async def test_content_lock_shows_in_serialization(self, client, page):
        response = await client.post(f"/api/v1/contents/{page['id']}/lock")
        assert response.json()["lock"]["effective"] == {"locked": True, "source": "self"}


class TestVersions:
    @pytest.mark.asyncio
    async def test_restore(self, client, page):
        url = f"/api/v1/contents/{page['id']}"
        await client.patch(url, json={"title": "Changed"})

        response = await client.post(f"{url}/versions/1/restore")
        assert response.status_code == 200
        assert response.json()["title"] == "Getting Started"
        assert response.json()["current_version"] == 3

    @pytest.mark.asyncio
    async def test_restore_unknown_version(self, client, page):
        response = await client.post(f"/api/v1/contents/{page['id']}/versions/9/restore")
        assert response.status_code == 404
        assert response.json()["version_number"] == 9

    @pytest.mark.asyncio
    async def test_restore_slug_in_use_409(self, client, page):
        url = f"/api/v1/contents/{page['id']}"
        await client.patch(url, json={"slug": "start"})
        response = await client.post("/api/v1/collections/docs/contents", json={"title": "Getting Started"})
        assert response.json()["slug"] == "getting-started"

        response = await client.post(f"{url}/versions/1/restore")
        assert response.status_code == 409
        assert response.json()["detail"] == "Slug 'getting-started' is already in use."

    @pytest.mark.asyncio
    async def test_compare(self, client, page):
        url = f"/api/v1/contents/{page['id']}"
        element = (await client.post(f"{url}/elements", json={"type": "json"})).json()["element"]

        response = await client.get(f"{url}/versions/compare", params={"from": 1, "to": 2})
        assert response.status_code == 200
        changes = response.json()["changes"]
        assert [node["id"] for node in changes["added"]] == [element["id"]]
        assert changes["removed"] == []

    @pytest.mark.asyncio
    async def test_show_version(self, client, page):
        response = await client.get(f"/api/v1/contents/{page['id']}/versions/1")
        assert response.status_code == 200
        assert response.json()["change_note"] == "Initial version"


class TestReleases:
    @pytest.mark.asyncio
    async def test_create_release_and_read_as_of(self, client, page):
        url = f"/api/v1/contents/{page['id']}"
        await client.patch(url, json={"title": "Basis final"})

        response = await client.post("/api/v1/collections/docs/releases", json={"name": "v2"})
        assert response.status_code == 201
        assert response.json()["current_release"] == "v2"

        await client.patch(url, json={"title": "In v2"})

        basis = (await client.get(url, params={"release": "Basis"})).json()
        assert basis["title"] == "Basis final"
        assert basis["is_release_end"] is True

        listing = (await client.get("/api/v1/collections/docs/contents", params={"release": "v2"})).json()
        assert [entry["title"] for entry in listing] == ["In v2"]

        releases = (await client.get("/api/v1/collections/docs/releases")).json()
        assert [r["name"] for r in releases["releases"]] == ["Basis", "v2"]

    @pytest.mark.asyncio
    async def test_duplicate_release_409(self, client, docs):
        response = await client.post("/api/v1/collections/docs/releases", json={"name": "Basis"})
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_unknown_release_404(self, client, page):
        response = await client.get("/api/v1/collections/docs/contents", params={"release": "v9"})
        assert response.status_code == 404
        assert response.json()["available_releases"] == ["Basis"]

    @pytest.mark.asyncio
    async def test_finalize(self, client, page):
        response = await client.post("/api/v1/collections/docs/releases/finalize")
        assert response.status_code == 200
        assert response.json() == {"release": "Basis", "marked": 1}


class TestPurge:
    @pytest.mark.asyncio
    async def test_preview_and_purge(self, client, page):
        url = f"/api/v1/contents/{page['id']}"
        for n in range(3):
            await client.patch(url, json={"title": f"Edit {n}"})

        preview = (await client.get("/api/v1/collections/docs/purge")).json()
        assert preview == {"count": 3}

        response = await client.post("/api/v1/collections/docs/purge")
        assert response.json() == {"deleted": 3}

        history = (await client.get(f"{url}/versions")).json()
        assert [entry["version"] for entry in history] == [4]

    @pytest.mark.asyncio
    async def test_purge_single_content(self, client, page):
        url = f"/api/v1/contents/{page['id']}"
        await client.patch(url, json={"title": "Edit"})

        response = await client.post(f"{url}/purge")
        assert response.json() == {"deleted": 1}
