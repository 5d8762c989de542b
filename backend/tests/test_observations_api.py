"""
PenguinWatch Backend - Observation API Tests
==============================================

What:  End-to-end tests of the HTTP surface: status codes, bodies, files.
How:   HTTPX AsyncClient over ASGITransport against an app with its own
       SQLite database and upload directory.

What we test:
    ✅ Create → get → list round trip with and without a photo
    ✅ 400 field-error bodies for invalid forms, images and path ids
    ✅ 404 envelopes for unknown records, files and routes
    ✅ Photo replacement and deletion keep the upload directory in sync
    ✅ Unexpected failures return a generic 500 envelope
    ✅ Malformed client request ids are replaced
"""

from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient, ASGITransport

from penguinwatch.dependencies import get_observation_service


def uploaded_files(app):
    return sorted(p.name for p in app.state.image_service.upload_dir.iterdir())


async def create(client, form, image=None):
    files = {"image": image} if image is not None else None
    return await client.post("/api/observations", data=form, files=files)


class TestCreateAndRead:

    @pytest.mark.asyncio
    async def test_create_without_image(self, test_client, observation_form):
        response = await create(test_client, observation_form)

        assert response.status_code == 201
        body = response.json()
        assert body["id"] > 0
        assert body["location"] == "Port Lockroy"
        assert body["adult_count"] == 5
        assert body["chick_count"] == 2
        assert body["image_url"] is None
        assert body["created_at"]

        fetched = await test_client.get(f"/api/observations/{body['id']}")
        assert fetched.status_code == 200
        assert fetched.json()["notes"] == observation_form["notes"]

    @pytest.mark.asyncio
    async def test_create_with_image_is_served(self, test_client, observation_form, png_bytes):
        response = await create(
            test_client, observation_form, ("colony.png", png_bytes, "image/png")
        )

        assert response.status_code == 201
        body = response.json()
        assert body["image_url"].startswith("/uploads/")
        assert body["image_original_name"] == "colony.png"
        assert body["image_mime_type"] == "image/png"
        assert (body["image_width"], body["image_height"]) == (40, 30)
        assert body["image_size"] == len(png_bytes)

        served = await test_client.get(body["image_url"])
        assert served.status_code == 200
        assert served.content == png_bytes

    @pytest.mark.asyncio
    async def test_empty_file_part_means_no_image(self, test_client, observation_form):
        response = await create(test_client, observation_form, ("", b"", "application/octet-stream"))
        assert response.status_code == 201
        assert response.json()["image_url"] is None

    @pytest.mark.asyncio
    async def test_list_newest_first(self, test_client, observation_form):
        first = (await create(test_client, observation_form)).json()
        second = (await create(test_client, {**observation_form, "species": "Adelie"})).json()

        response = await test_client.get("/api/observations")
        assert response.status_code == 200
        assert [obs["id"] for obs in response.json()] == [second["id"], first["id"]]

    @pytest.mark.asyncio
    async def test_list_empty(self, test_client):
        response = await test_client.get("/api/observations")
        assert response.status_code == 200
        assert response.json() == []

    @pytest.mark.asyncio
    async def test_request_id_header(self, test_client):
        response = await test_client.get("/api/observations", headers={"X-Request-ID": "abc123"})
        assert response.headers["X-Request-ID"] == "abc123"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("client_id", ["bad id with spaces", "x" * 100, "<script>"])
    async def test_malformed_request_id_replaced(self, test_client, client_id):
        response = await test_client.get("/api/observations", headers={"X-Request-ID": client_id})

        rid = response.headers["X-Request-ID"]
        assert rid != client_id
        assert len(rid) == 8

    @pytest.mark.asyncio
    async def test_request_id_generated_when_absent(self, test_client):
        response = await test_client.get("/api/observations")
        assert len(response.headers["X-Request-ID"]) == 8


class TestValidationErrors:

    @pytest.mark.asyncio
    async def test_negative_count(self, test_client, observation_form):
        response = await create(test_client, {**observation_form, "adult_count": "-1"})

        assert response.status_code == 400
        assert response.json() == {"error": [{
            "path": ["adult_count"],
            "message": "Adult count must be 0 or greater",
            "code": "too_small",
        }]}

    @pytest.mark.asyncio
    async def test_unknown_location(self, test_client, observation_form):
        response = await create(test_client, {**observation_form, "location": "Nowhere"})

        assert response.status_code == 400
        errors = response.json()["error"]
        assert errors[0]["path"] == ["location"]
        assert errors[0]["message"] == "Please select a valid location"

    @pytest.mark.asyncio
    async def test_invalid_form_stores_no_image(self, app, test_client, observation_form, png_bytes):
        response = await create(
            test_client,
            {**observation_form, "notes": ""},
            ("colony.png", png_bytes, "image/png"),
        )
        assert response.status_code == 400
        assert uploaded_files(app) == []

    @pytest.mark.asyncio
    async def test_rejected_image_type(self, app, test_client, observation_form, gif_bytes):
        response = await create(test_client, observation_form, ("a.gif", gif_bytes, "image/gif"))

        assert response.status_code == 400
        assert response.json()["error"][0]["path"] == ["image"]
        assert uploaded_files(app) == []

        listed = await test_client.get("/api/observations")
        assert listed.json() == []

    @pytest.mark.asyncio
    async def test_undecodable_image(self, app, test_client, observation_form):
        response = await create(
            test_client, observation_form, ("a.jpg", b"\xff\xd8garbage", "image/jpeg")
        )

        assert response.status_code == 400
        assert response.json()["error"][0]["message"] == "Invalid image file"
        assert uploaded_files(app) == []

    @pytest.mark.asyncio
    async def test_non_integer_path_id(self, test_client):
        response = await test_client.get("/api/observations/abc")

        assert response.status_code == 400
        assert response.json()["error"][0]["path"] == ["path", "observation_id"]

    @pytest.mark.asyncio
    async def test_decompression_bomb_image(self, app, test_client, observation_form, oversized_png_bytes):
        response = await create(
            test_client, observation_form, ("huge.png", oversized_png_bytes, "image/png")
        )

        assert response.status_code == 400
        assert response.json()["error"][0]["message"] == "Invalid image file"
        assert uploaded_files(app) == []
        assert (await test_client.get("/api/observations")).json() == []

    @pytest.mark.asyncio
    async def test_count_too_large(self, test_client, observation_form):
        response = await create(test_client, {**observation_form, "adult_count": "2147483648"})

        assert response.status_code == 400
        item = response.json()["error"][0]
        assert item["path"] == ["adult_count"]
        assert item["code"] == "too_big"


class TestNotFound:

    @pytest.mark.asyncio
    async def test_get_missing(self, test_client):
        response = await test_client.get("/api/observations/999")

        assert response.status_code == 404
        error = response.json()["error"]
        assert error["message"] == "Observation not found"
        assert error["status"] == 404
        assert error["timestamp"]

    @pytest.mark.asyncio
    async def test_delete_missing(self, test_client):
        response = await test_client.delete("/api/observations/999")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_put_missing_writes_no_file(self, app, test_client, observation_form, png_bytes):
        response = await test_client.put(
            "/api/observations/999",
            data=observation_form,
            files={"image": ("colony.png", png_bytes, "image/png")},
        )
        assert response.status_code == 404
        assert uploaded_files(app) == []

    @pytest.mark.asyncio
    async def test_missing_upload(self, test_client):
        response = await test_client.get("/uploads/1-deadbeef.png")
        assert response.status_code == 404
        assert response.json()["error"]["status"] == 404

    @pytest.mark.asyncio
    async def test_unknown_route_uses_envelope(self, test_client):
        response = await test_client.get("/api/penguins")
        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Not Found"


class TestUpdateAndDelete:

    @pytest.mark.asyncio
    async def test_put_replaces_fields(self, test_client, observation_form):
        created = (await create(test_client, observation_form)).json()
        before = (await test_client.get(f"/api/observations/{created['id']}")).json()

        response = await test_client.put(
            f"/api/observations/{created['id']}",
            data={**observation_form, "location": "Booth Island", "chick_count": "7"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["id"] == created["id"]
        assert body["location"] == "Booth Island"
        assert body["chick_count"] == 7
        assert body["created_at"] == before["created_at"]

    @pytest.mark.asyncio
    async def test_put_replaces_image(self, app, test_client, observation_form, png_bytes, jpeg_bytes):
        created = (await create(
            test_client, observation_form, ("first.png", png_bytes, "image/png")
        )).json()

        response = await test_client.put(
            f"/api/observations/{created['id']}",
            data=observation_form,
            files={"image": ("second.jpg", jpeg_bytes, "image/jpeg")},
        )
        assert response.status_code == 200
        updated = response.json()
        assert updated["image_url"] != created["image_url"]
        assert updated["image_mime_type"] == "image/jpeg"

        assert (await test_client.get(created["image_url"])).status_code == 404
        assert (await test_client.get(updated["image_url"])).status_code == 200
        assert len(uploaded_files(app)) == 1

    @pytest.mark.asyncio
    async def test_put_invalid_keeps_record(self, test_client, observation_form):
        created = (await create(test_client, observation_form)).json()

        response = await test_client.put(
            f"/api/observations/{created['id']}",
            data={**observation_form, "adult_count": "-4"},
        )
        assert response.status_code == 400

        fetched = (await test_client.get(f"/api/observations/{created['id']}")).json()
        assert fetched["adult_count"] == 5

    @pytest.mark.asyncio
    async def test_delete_removes_record_and_file(self, app, test_client, observation_form, png_bytes):
        created = (await create(
            test_client, observation_form, ("colony.png", png_bytes, "image/png")
        )).json()

        response = await test_client.delete(f"/api/observations/{created['id']}")
        assert response.status_code == 200
        assert response.json() == {"success": True}

        assert (await test_client.get(f"/api/observations/{created['id']}")).status_code == 404
        assert (await test_client.get(created["image_url"])).status_code == 404
        assert uploaded_files(app) == []

    @pytest.mark.asyncio
    async def test_put_undecodable_image_keeps_photo(self, app, test_client, observation_form, png_bytes):
        created = (await create(
            test_client, observation_form, ("colony.png", png_bytes, "image/png")
        )).json()

        response = await test_client.put(
            f"/api/observations/{created['id']}",
            data=observation_form,
            files={"image": ("bad.jpg", b"\xff\xd8garbage", "image/jpeg")},
        )
        assert response.status_code == 400
        assert response.json()["error"][0]["message"] == "Invalid image file"

        fetched = (await test_client.get(f"/api/observations/{created['id']}")).json()
        assert fetched["image_url"] == created["image_url"]
        assert fetched["image_size"] == len(png_bytes)
        assert (await test_client.get(created["image_url"])).status_code == 200
        assert uploaded_files(app) == [created["image_url"].rsplit("/", 1)[1]]

    @pytest.mark.asyncio
    async def test_delete_succeeds_when_file_removal_fails(self, app, test_client, observation_form, png_bytes):
        created = (await create(
            test_client, observation_form, ("colony.png", png_bytes, "image/png")
        )).json()
        app.state.image_service.remove_by_url = AsyncMock(return_value=False)

        response = await test_client.delete(f"/api/observations/{created['id']}")
        assert response.status_code == 200
        assert response.json() == {"success": True}

        app.state.image_service.remove_by_url.assert_awaited_once_with(created["image_url"])
        assert (await test_client.get(f"/api/observations/{created['id']}")).status_code == 404


class TestUnexpectedErrors:

    @pytest.mark.asyncio
    async def test_generic_500(self, app):
        class BrokenService:
            async def list_observations(self, db):
                raise RuntimeError("connection string leaked here")

        app.dependency_overrides[get_observation_service] = lambda: BrokenService()
        transport = ASGITransport(app=app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/api/observations")

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["status"] == 500
        assert "leaked" not in error["message"]


class TestHealth:

    @pytest.mark.asyncio
    async def test_health(self, test_client):
        response = await test_client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"
