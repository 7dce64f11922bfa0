"""Integration tests for the catalog, seller listings and reviews."""

import os

import pytest
from conftest import auth_headers

from app.config import get_settings
from app.interfaces.api import products as products_api


def add_product(client, headers, files=None, **overrides):
    data = {
        "title": "Hand-woven Rug",
        "description": "Wool rug from the Atlas mountains",
        "price": "19.99",
        "country": "Morocco",
        "stock": "3",
        "categories": "Textiles, Home,Textiles",
    }
    data.update(overrides)
    data = {k: v for k, v in data.items() if v is not None}
    return client.post("/add-product", data=data, files=files, headers=headers)


@pytest.fixture
def seller(client):
    return auth_headers(client, "seller@example.com", role="SELLER")


@pytest.fixture
def buyer(client):
    return auth_headers(client, "buyer@example.com")


class TestAddProduct:
    def test_seller_creates_listing(self, client, seller):
        response = add_product(client, seller)
        assert response.status_code == 201
        product = response.json()
        assert product["title"] == "Hand-woven Rug"
        assert product["price"] == "19.99"
        assert product["categories"] == ["Home", "Textiles"]
        assert product["stock"] == 3
        assert product["images"] == []
        assert product["sellerId"] == client.get("/me", headers=seller).json()["id"]

    def test_image_is_stored_and_only_the_url_kept(self, client, seller):
        files = {"image": ("rug.PNG", b"\x89PNG fake bytes", "image/png")}
        response = add_product(client, seller, files=files)
        assert response.status_code == 201
        [url] = response.json()["images"]
        assert url.startswith("http://localhost:8000/media/products/")
        assert url.endswith(".png")

        stored = os.path.join(get_settings().UPLOAD_DIR, "products", url.rsplit("/", 1)[-1])
        with open(stored, "rb") as f:
            assert f.read() == b"\x89PNG fake bytes"

        served = client.get(url.replace("http://localhost:8000", ""))
        assert served.status_code == 200

    def test_unsupported_image_type(self, client, seller):
        files = {"image": ("payload.exe", b"MZ", "application/octet-stream")}
        response = add_product(client, seller, files=files)
        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Unsupported image type"

    def test_oversize_image_is_rejected(self, client, seller, monkeypatch):
        monkeypatch.setattr(products_api, "MAX_IMAGE_BYTES", 10)
        files = {"image": ("rug.png", b"x" * 11, "image/png")}
        response = add_product(client, seller, files=files)
        assert response.status_code == 400
        error = response.json()["error"]
        assert error["message"] == "Image too large"
        assert error["details"] == {"maxBytes": 10}
        assert client.get("/my-products", headers=seller).json()["total"] == 0

    def test_image_at_the_limit_is_accepted(self, client, seller, monkeypatch):
        monkeypatch.setattr(products_api, "MAX_IMAGE_BYTES", 10)
        files = {"image": ("rug.png", b"x" * 10, "image/png")}
        assert add_product(client, seller, files=files).status_code == 201

    def test_buyer_cannot_add_products(self, client, buyer):
        response = add_product(client, buyer)
        assert response.status_code == 403

    def test_requires_authentication(self, client):
        assert add_product(client, {}).status_code == 401

    def test_missing_fields(self, client, seller):
        response = add_product(client, seller, title=None, country="  ")
        assert response.status_code == 400
        error = response.json()["error"]
        assert error["message"] == "All fields are required."
        assert error["details"]["missing"] == ["title", "country"]

    @pytest.mark.parametrize("price", ["0", "-5", "abc"])
    def test_invalid_price(self, client, seller, price):
        response = add_product(client, seller, price=price)
        assert response.status_code == 400
        fields = [f["field"] for f in response.json()["error"]["details"]["fields"]]
        assert fields == ["price"]

    def test_negative_stock(self, client, seller):
        response = add_product(client, seller, stock="-1")
        assert response.status_code == 400


class TestCatalog:
    @pytest.fixture
    def listings(self, client, seller):
        add_product(client, seller, title="Copper Lantern", price="45.00", country="Egypt", categories="Lighting")
        add_product(client, seller, title="Silk Scarf", price="30.50", country="Syria", categories="Textiles")
        add_product(client, seller, title="Clay Pot", price="12.00", country="Morocco", categories="Pottery")

    def test_newest_first(self, client, listings):
        response = client.get("/products")
        assert response.status_code == 200
        page = response.json()
        assert page["total"] == 3
        assert [p["title"] for p in page["items"]] == ["Clay Pot", "Silk Scarf", "Copper Lantern"]

    def test_filters(self, client, listings):
        assert [p["title"] for p in client.get("/products", params={"search": "lan"}).json()["items"]] == [
            "Copper Lantern"
        ]
        assert client.get("/products", params={"country": "Morocco"}).json()["total"] == 1
        assert client.get("/products", params={"category": "Textiles"}).json()["items"][0]["title"] == "Silk Scarf"
        in_range = client.get("/products", params={"min_price": "20", "max_price": "40"}).json()
        assert [p["title"] for p in in_range["items"]] == ["Silk Scarf"]

    def test_pagination(self, client, listings):
        page = client.get("/products", params={"page": 2, "page_size": 2}).json()
        assert page["page"] == 2
        assert page["pageSize"] == 2
        assert page["totalPages"] == 2
        assert [p["title"] for p in page["items"]] == ["Copper Lantern"]

    def test_page_size_is_capped(self, client):
        assert client.get("/products", params={"page_size": 1000}).status_code == 400

    def test_product_detail(self, client, seller):
        product_id = add_product(client, seller).json()["id"]
        response = client.get(f"/products/{product_id}")
        assert response.status_code == 200
        assert response.json()["country"] == "Morocco"

    def test_unknown_product(self, client):
        response = client.get("/products/999")
        assert response.status_code == 404
        assert response.json()["error"]["details"] == {"id": 999}

    def test_my_products_only_lists_own(self, client, seller):
        add_product(client, seller, title="Mine")
        other = auth_headers(client, "other-seller@example.com", role="SELLER")
        add_product(client, other, title="Theirs")

        response = client.get("/my-products", headers=seller)
        assert response.status_code == 200
        assert [p["title"] for p in response.json()["items"]] == ["Mine"]

    def test_my_products_requires_seller(self, client, buyer):
        assert client.get("/my-products", headers=buyer).status_code == 403


class TestReviews:
    @pytest.fixture
    def product_id(self, client, seller):
        return add_product(client, seller).json()["id"]

    def test_buyer_reviews_product(self, client, buyer, product_id):
        response = client.post(
            f"/products/{product_id}/reviews", json={"rating": 5, "comment": "Beautiful"}, headers=buyer
        )
        assert response.status_code == 201
        assert response.json()["rating"] == 5

        reviews = client.get(f"/products/{product_id}/reviews").json()
        assert [r["comment"] for r in reviews] == ["Beautiful"]

    def test_seller_cannot_review(self, client, seller, product_id):
        response = client.post(f"/products/{product_id}/reviews", json={"rating": 4}, headers=seller)
        assert response.status_code == 403

    def test_rating_out_of_range(self, client, buyer, product_id):
        response = client.post(f"/products/{product_id}/reviews", json={"rating": 6}, headers=buyer)
        assert response.status_code == 400

    def test_review_unknown_product(self, client, buyer):
        response = client.post("/products/999/reviews", json={"rating": 3}, headers=buyer)
        assert response.status_code == 404
        assert client.get("/products/999/reviews").status_code == 404
