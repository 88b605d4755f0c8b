"""
Recipes API - HTTP Endpoint Tests
===================================

What:  End-to-end requests through the FastAPI app (middleware, exception
       handlers, routes, services) with HTTPX over ASGI.
How:   The test_client fixture swaps in the SQLite session factory, the
       in-memory cache and the fake image host.
"""

import uuid

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import OperationalError

from recipes_api.config import Settings
from recipes_api.database import get_db_session
from recipes_api.exceptions import ImageStoreError

from conftest import PNG_BYTES

API = "/v1/api"


async def _create_category(client, name="Desserts") -> str:
    response = await client.post(f"{API}/categories", json={"name": name})
    assert response.status_code == 201
    return response.json()["id"]


def _recipe_form(category_id: str, **overrides):
    form = {
        "name": "Churros",
        "description": "Fried dough with sugar",
        "ingredients": ["flour", "water", "sugar"],
        "steps": ["boil", "pipe", "fry"],
        "category": category_id,
    }
    form.update(overrides)
    return form


def _image(filename="churros.png", content_type="image/png", content=PNG_BYTES):
    return {"image": (filename, content, content_type)}


async def _create_recipe(client, category_id: str, headers=None, **overrides):
    return await client.post(
        f"{API}/recipes",
        data=_recipe_form(category_id, **overrides),
        files=_image(),
        headers=headers or {},
    )


class _UnreachableSession:
    """Session stand-in whose every query fails at the connection."""

    async def execute(self, *args, **kwargs):
        raise OperationalError("SELECT 1", {}, ConnectionRefusedError("connection refused"))

    async def rollback(self):
        pass


class TestHealth:

    @pytest.mark.asyncio
    async def test_health_reports_components(self, test_client):
        response = await test_client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["database"] == "connected"
        assert body["cache"] == "available"
        # No Cloudinary credentials in the test environment
        assert body["image_store"] == "missing"
        assert body["status"] == "degraded"

    @pytest.mark.asyncio
    async def test_health_reads_the_app_settings(self, app_factory):
        app = app_factory(
            Settings(
                cloudinary_cloud_name="demo",
                cloudinary_api_key="key",
                cloudinary_api_secret="secret",
            )
        )
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["image_store"] == "configured"
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_unreachable_database_is_unhealthy(self, app_factory):
        async def unreachable_session():
            yield _UnreachableSession()

        app = app_factory()
        app.dependency_overrides[get_db_session] = unreachable_session
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/health")

        assert response.status_code == 503
        assert response.json()["database"] == "disconnected"
        assert response.json()["status"] == "unhealthy"


class TestRecipeListing:

    @pytest.mark.asyncio
    async def test_empty_catalog_is_page_not_found(self, test_client):
        response = await test_client.get(f"{API}/recipes")
        assert response.status_code == 404
        assert response.json()["message"] == "Page not found"

    @pytest.mark.asyncio
    async def test_listing_carries_cache_key_and_joined_category(self, test_client):
        category_id = await _create_category(test_client)
        assert (await _create_recipe(test_client, category_id)).status_code == 201

        response = await test_client.get(f"{API}/recipes", params={"page": 1, "limit": 5})

        assert response.status_code == 200
        assert response.headers["X-Cache-Key"] == "recipes_list_page_1_5"
        assert response.headers["X-Total-Count"] == "1"
        body = response.json()
        assert body["page"] == 1
        assert body["total_pages"] == 1
        recipe = body["data"][0]
        assert recipe["category"]["name"] == "Desserts"
        assert recipe["image_url"].startswith("https://")
        assert "image_asset_id" not in recipe

    @pytest.mark.asyncio
    async def test_cached_page_survives_write_without_key(self, test_client):
        category_id = await _create_category(test_client)
        await _create_recipe(test_client, category_id, name="Flan")
        first = await test_client.get(f"{API}/recipes")

        await _create_recipe(test_client, category_id, name="Churros")
        second = await test_client.get(f"{API}/recipes")

        assert second.json() == first.json()

    @pytest.mark.asyncio
    async def test_write_with_cache_key_refreshes_that_page(self, test_client):
        category_id = await _create_category(test_client)
        await _create_recipe(test_client, category_id, name="Flan")
        first = await test_client.get(f"{API}/recipes")
        cache_key = first.headers["X-Cache-Key"]

        await _create_recipe(test_client, category_id, headers={"X-Cache-Key": cache_key}, name="Churros")
        second = await test_client.get(f"{API}/recipes")

        assert second.json()["total_items"] == 2
        assert {r["name"] for r in second.json()["data"]} == {"Flan", "Churros"}

    @pytest.mark.asyncio
    async def test_page_past_the_end(self, test_client):
        category_id = await _create_category(test_client)
        await _create_recipe(test_client, category_id)
        response = await test_client.get(f"{API}/recipes", params={"page": 2})
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_limit_below_one_is_rejected(self, test_client):
        response = await test_client.get(f"{API}/recipes", params={"limit": 0})
        assert response.status_code == 422


class TestRecipeLookups:

    @pytest.mark.asyncio
    async def test_find_one_and_missing(self, test_client):
        category_id = await _create_category(test_client)
        await _create_recipe(test_client, category_id)
        recipe_id = (await test_client.get(f"{API}/recipes")).json()["data"][0]["id"]

        found = await test_client.get(f"{API}/recipes/{recipe_id}")
        assert found.status_code == 200
        assert found.json()["steps"] == ["boil", "pipe", "fry"]

        missing = await test_client.get(f"{API}/recipes/{uuid.uuid4()}")
        assert missing.status_code == 404

    @pytest.mark.asyncio
    async def test_latest(self, test_client):
        category_id = await _create_category(test_client)
        await _create_recipe(test_client, category_id, name="Flan")
        response = await test_client.get(f"{API}/recipes/latest", params={"limit": 1})
        assert response.status_code == 200
        assert [r["name"] for r in response.json()] == ["Flan"]

    @pytest.mark.asyncio
    async def test_search(self, test_client):
        category_id = await _create_category(test_client)
        await _create_recipe(test_client, category_id, name="Chocolate Churros")

        found = await test_client.get(f"{API}/recipes/search", params={"name": "churro"})
        assert [r["name"] for r in found.json()] == ["Chocolate Churros"]

        none = await test_client.get(f"{API}/recipes/search", params={"name": "sushi"})
        assert none.status_code == 200
        assert none.json() == {"message": "No recipes were found with that name."}

    @pytest.mark.asyncio
    async def test_filter_by_category(self, test_client):
        desserts = await _create_category(test_client, "Desserts")
        soups = await _create_category(test_client, "Soups")
        await _create_recipe(test_client, desserts, name="Flan")

        found = await test_client.get(f"{API}/recipes/filter", params={"CategoryId": desserts})
        assert [r["name"] for r in found.json()] == ["Flan"]

        empty = await test_client.get(f"{API}/recipes/filter", params={"CategoryId": soups})
        assert empty.json() == {"message": "There are no recipes in this category."}


class TestRecipeWrites:

    @pytest.mark.asyncio
    async def test_create(self, test_client, fake_image_store):
        category_id = await _create_category(test_client)
        response = await _create_recipe(test_client, category_id)

        assert response.status_code == 201
        assert response.json() == {"message": "Recipe created successfully", "name": "Churros"}
        assert len(fake_image_store.uploaded) == 1

    @pytest.mark.asyncio
    async def test_create_accepts_json_array_fields(self, test_client):
        category_id = await _create_category(test_client)
        response = await _create_recipe(
            test_client, category_id, ingredients='["flour", "water"]', steps='["mix"]'
        )
        assert response.status_code == 201

    @pytest.mark.asyncio
    async def test_create_without_image(self, test_client):
        category_id = await _create_category(test_client)
        response = await test_client.post(f"{API}/recipes", data=_recipe_form(category_id))
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    @pytest.mark.asyncio
    async def test_create_with_unsupported_image(self, test_client):
        category_id = await _create_category(test_client)
        response = await test_client.post(
            f"{API}/recipes",
            data=_recipe_form(category_id),
            files=_image(filename="anim.gif", content_type="image/gif"),
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_create_with_script_renamed_as_image(self, test_client, fake_image_store):
        category_id = await _create_category(test_client)
        response = await test_client.post(
            f"{API}/recipes",
            data=_recipe_form(category_id),
            files=_image(content=b"#!/bin/sh\necho not an image\n"),
        )
        assert response.status_code == 400
        assert "not a supported image type" in response.json()["message"]
        assert fake_image_store.uploaded == []

    @pytest.mark.asyncio
    async def test_create_with_unknown_form_field(self, test_client):
        category_id = await _create_category(test_client)
        response = await _create_recipe(test_client, category_id, chef="Ana")
        assert response.status_code == 400
        assert response.json()["details"]["unknown_fields"] == ["chef"]

    @pytest.mark.asyncio
    async def test_create_with_empty_ingredients(self, test_client):
        category_id = await _create_category(test_client)
        response = await _create_recipe(test_client, category_id, ingredients="[]")
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_create_with_unknown_category(self, test_client):
        response = await _create_recipe(test_client, str(uuid.uuid4()))
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_create_failure_returns_generic_error(self, test_client, fake_image_store):
        category_id = await _create_category(test_client)
        fake_image_store.upload_error = ImageStoreError("Failed to upload the image")

        response = await _create_recipe(test_client, category_id)

        assert response.status_code == 500
        assert response.json()["message"] == "Error creating the recipe"
        assert (await test_client.get(f"{API}/recipes")).status_code == 404

    @pytest.mark.asyncio
    async def test_update_and_delete(self, test_client, fake_image_store):
        category_id = await _create_category(test_client)
        await _create_recipe(test_client, category_id)
        listing = await test_client.get(f"{API}/recipes")
        recipe_id = listing.json()["data"][0]["id"]
        headers = {"X-Cache-Key": listing.headers["X-Cache-Key"]}

        updated = await test_client.put(
            f"{API}/recipes/{recipe_id}",
            data={"name": "Churros con chocolate"},
            files=_image(filename="new.webp", content_type="image/webp"),
            headers=headers,
        )
        assert updated.status_code == 200
        assert updated.json() == {"message": "Recipe updated successfully", "name": "Churros con chocolate"}
        assert fake_image_store.deleted == ["recipes/img-1"]

        refreshed = await test_client.get(f"{API}/recipes")
        assert refreshed.json()["data"][0]["name"] == "Churros con chocolate"
        assert refreshed.json()["data"][0]["image_url"].endswith("recipes/img-2.png")

        deleted = await test_client.delete(f"{API}/recipes/{recipe_id}", headers=headers)
        assert deleted.status_code == 200
        assert deleted.json()["message"] == "Recipe deleted successfully"
        assert (await test_client.get(f"{API}/recipes/{recipe_id}")).status_code == 404

    @pytest.mark.asyncio
    async def test_update_with_unknown_form_field(self, test_client):
        category_id = await _create_category(test_client)
        await _create_recipe(test_client, category_id)
        recipe_id = (await test_client.get(f"{API}/recipes")).json()["data"][0]["id"]

        response = await test_client.put(f"{API}/recipes/{recipe_id}", data={"rating": "5"})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_update_with_empty_country_clears_it(self, test_client):
        category_id = await _create_category(test_client)
        country_id = (await test_client.post(f"{API}/countries", json={"name": "Spain"})).json()["id"]
        await _create_recipe(test_client, category_id, country=country_id)
        recipe_id = (await test_client.get(f"{API}/recipes")).json()["data"][0]["id"]

        response = await test_client.put(f"{API}/recipes/{recipe_id}", data={"country": ""})

        assert response.status_code == 200
        found = await test_client.get(f"{API}/recipes/{recipe_id}")
        assert found.json()["country"] is None

    @pytest.mark.asyncio
    async def test_update_missing_recipe(self, test_client):
        response = await test_client.put(f"{API}/recipes/{uuid.uuid4()}", data={"name": "x"})
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_delete_missing_recipe(self, test_client):
        response = await test_client.delete(f"{API}/recipes/{uuid.uuid4()}")
        assert response.status_code == 404


class TestCatalogEndpoints:

    @pytest.mark.asyncio
    async def test_category_crud(self, test_client):
        category_id = await _create_category(test_client, "Desert")

        renamed = await test_client.put(f"{API}/categories/{category_id}", json={"name": "Desserts"})
        assert renamed.json()["name"] == "Desserts"

        listed = await test_client.get(f"{API}/categories")
        assert [c["name"] for c in listed.json()] == ["Desserts"]

        deleted = await test_client.delete(f"{API}/categories/{category_id}")
        assert deleted.status_code == 200
        assert (await test_client.get(f"{API}/categories/{category_id}")).status_code == 404

    @pytest.mark.asyncio
    async def test_duplicate_category(self, test_client):
        await _create_category(test_client, "Soups")
        response = await test_client.post(f"{API}/categories", json={"name": "soups"})
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_unknown_json_field_is_rejected(self, test_client):
        response = await test_client.post(f"{API}/categories", json={"name": "Soups", "color": "red"})
        assert response.status_code == 422
        assert (await test_client.get(f"{API}/categories")).json() == []

    @pytest.mark.asyncio
    async def test_category_in_use_cannot_be_deleted(self, test_client):
        category_id = await _create_category(test_client)
        await _create_recipe(test_client, category_id)
        response = await test_client.delete(f"{API}/categories/{category_id}")
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_country_is_linked_to_recipe(self, test_client):
        category_id = await _create_category(test_client)
        country = await test_client.post(f"{API}/countries", json={"name": "Spain"})
        assert country.status_code == 201
        country_id = country.json()["id"]

        await _create_recipe(test_client, category_id, country=country_id)
        recipe = (await test_client.get(f"{API}/recipes")).json()["data"][0]
        assert recipe["country"] == country_id


class TestMiddleware:

    @pytest.mark.asyncio
    async def test_request_id_is_echoed(self, test_client):
        response = await test_client.get(f"{API}/categories", headers={"X-Request-ID": "abc123"})
        assert response.headers["X-Request-ID"] == "abc123"

    @pytest.mark.asyncio
    async def test_request_id_is_generated(self, test_client):
        response = await test_client.get(f"{API}/categories")
        assert len(response.headers["X-Request-ID"]) == 8

    @pytest.mark.asyncio
    async def test_security_headers_are_set(self, test_client):
        response = await test_client.get(f"{API}/categories")
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "SAMEORIGIN"
        assert response.headers["Referrer-Policy"] == "no-referrer"

    @pytest.mark.asyncio
    async def test_security_headers_on_error_responses(self, test_client):
        response = await test_client.get(f"{API}/categories/{uuid.uuid4()}")
        assert response.status_code == 404
        assert response.headers["X-Content-Type-Options"] == "nosniff"
