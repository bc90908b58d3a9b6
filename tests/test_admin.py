"""Tests for admin product management."""

from datetime import datetime
from pathlib import Path

import pytest
from bson import ObjectId

from tests.conftest import make_product

IMAGE = ("controller.png", b"\x89PNG fake image bytes", "image/png")


def _form(**overrides):
    data = {
        "name": "Controller",
        "price": "250",
        "category": "Gaming",
        "subcategory": "Accessories",
        "is_available": "true",
    }
    data.update(overrides)
    return data


@pytest.fixture
def gaming(client, admin_headers):
    response = client.put(
        "/api/admin/categories",
        json={"name": "Gaming", "subcategories": ["Consoles", "Accessories"]},
        headers=admin_headers,
    )
    assert response.status_code == 200
    return response.json()


class TestAccess:
    def test_non_admin_forbidden(self, client, user_headers):
        assert client.get("/api/admin/products", headers=user_headers).status_code == 403

    def test_anonymous_rejected(self, client):
        assert client.get("/api/admin/products").status_code == 401


class TestCreate:
    def test_image_required(self, client, admin_headers):
        response = client.post("/api/admin/products", data=_form(), headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "An image is required for new products."

    def test_create_uploads_image(self, client, db, storage, admin_headers, gaming):
        response = client.post(
            "/api/admin/products", data=_form(), files={"image": IMAGE}, headers=admin_headers
        )
        assert response.status_code == 201
        body = response.json()
        assert body["image_url"].startswith("/assets/")
        assert body["image_url"].endswith("-controller.png")
        stored = Path(storage.root) / body["image_url"].rsplit("/", 1)[1]
        assert stored.read_bytes() == IMAGE[1]
        assert db["products"].count_documents({"name": "Controller"}) == 1

    def test_subcategory_must_match_category(self, client, admin_headers, gaming):
        response = client.post(
            "/api/admin/products",
            data=_form(subcategory="Sci-Fi"),
            files={"image": IMAGE},
            headers=admin_headers,
        )
        assert response.status_code == 400
        assert response.json()["error_type"] == "InvalidCategoryError"

    def test_categories_listed(self, client, gaming):
        cats = client.get("/api/categories").json()
        assert [c["name"] for c in cats] == ["Gaming"]
        assert cats[0]["subcategories"] == ["Consoles", "Accessories"]


class TestUpdate:
    def test_keeps_existing_image(self, client, db, admin_headers):
        pid = make_product(db, "Controller", 250)
        response = client.put(
            f"/api/admin/products/{pid}", data=_form(price="199"), headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json()["image_url"] == "/assets/controller.png"
        assert response.json()["price"] == 199

    def test_stamps_updated_at(self, client, db, admin_headers):
        pid = make_product(db, "Controller", 250)
        stale = datetime(2020, 1, 1)
        db["products"].update_one({"_id": ObjectId(pid)}, {"$set": {"updated_at": stale}})
        response = client.put(f"/api/admin/products/{pid}", data=_form(), headers=admin_headers)
        assert response.status_code == 200
        doc = db["products"].find_one({"_id": ObjectId(pid)})
        assert doc["updated_at"].replace(tzinfo=None) > stale
        assert doc["created_at"] is not None

    def test_replaces_image(self, client, db, admin_headers):
        pid = make_product(db, "Controller", 250)
        response = client.put(
            f"/api/admin/products/{pid}", data=_form(), files={"image": IMAGE}, headers=admin_headers
        )
        assert response.json()["image_url"] != "/assets/controller.png"

    def test_edit_without_any_image(self, client, db, admin_headers):
        pid = make_product(db, "Controller", 250, image_url="")
        response = client.put(f"/api/admin/products/{pid}", data=_form(), headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "An image is required."

    def test_unknown_product(self, client, admin_headers):
        response = client.put(
            "/api/admin/products/0123456789abcdef01234567", data=_form(), headers=admin_headers
        )
        assert response.status_code == 404


class TestDeleteAndAvailability:
    def test_delete_needs_confirmation(self, client, db, admin_headers):
        pid = make_product(db, "Controller", 250)
        response = client.delete(f"/api/admin/products/{pid}", headers=admin_headers)
        assert response.status_code == 400
        assert db["products"].count_documents({}) == 1

        response = client.delete(
            f"/api/admin/products/{pid}", params={"confirm": "true"}, headers=admin_headers
        )
        assert response.status_code == 200
        assert db["products"].count_documents({}) == 0

    def test_toggle_availability(self, client, db, admin_headers):
        pid = make_product(db, "Controller", 250)
        first = client.patch(f"/api/admin/products/{pid}/availability", headers=admin_headers).json()
        assert first == {"id": pid, "is_available": False, "updated": True}
        second = client.patch(f"/api/admin/products/{pid}/availability", headers=admin_headers).json()
        assert second["is_available"] is True
        product = db["products"].find_one({})
        assert product["is_available"] is True
        assert product["price"] == 250
