"""Tests for the /products endpoints."""

import uuid
from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from app.database import get_session
from app.main import app
from app.models.product import Gender

from conftest import BROKEN_IMAGE, FakeImageStore

URL = "/api/v1/products"

FIELDS = {
    "title": "Raw Denim",
    "gender": "MEN",
    "category": "DENIM",
    "size": "32",
    "price": "89.90",
}


def _files(*payloads: bytes) -> list[tuple]:
    return [
        ("images", (f"img{i}.png", payload, "image/png"))
        for i, payload in enumerate(payloads)
    ]


class TestHealth:
    def test_root(self, client: TestClient) -> None:
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestListProducts:
    """Tests for GET /products."""

    def test_empty(self, client: TestClient) -> None:
        response = client.get(URL)
        assert response.status_code == 200
        assert response.json() == {"data": [], "totalCount": 0, "totalPages": 0, "page": 1}

    def test_camel_case_records(self, client: TestClient, make_product) -> None:
        make_product(fragrance="vetiver")

        body = client.get(URL).json()
        record = body["data"][0]

        for key in ("id", "title", "gender", "category", "size", "price", "stock"):
            assert key in record
        assert record["fragrance"] == "vetiver"
        assert len(record["imageUrls"]) == 2
        assert "createdAt" in record

    def test_filter_and_pagination(self, client: TestClient, make_product) -> None:
        for _ in range(5):
            make_product(gender=Gender.WOMEN)
        make_product(gender=Gender.MEN)

        response = client.get(URL, params={"gender": "WOMEN", "limit": 2, "page": 3})
        body = response.json()

        assert response.status_code == 200
        assert body["totalCount"] == 5
        assert body["totalPages"] == 3
        assert body["page"] == 3
        assert [p["gender"] for p in body["data"]] == ["WOMEN"]

    def test_bad_paging_values_fall_back(self, client: TestClient, make_product) -> None:
        make_product()
        body = client.get(URL, params={"page": "first", "limit": "0"}).json()
        assert body["page"] == 1
        assert body["totalPages"] == 1

    def test_unknown_filter_value_is_empty_page(self, client: TestClient, make_product) -> None:
        make_product()
        response = client.get(URL, params={"gender": "women"})
        assert response.status_code == 200
        assert response.json() == {"data": [], "totalCount": 0, "totalPages": 0, "page": 1}


class TestGetProduct:
    def test_found(self, client: TestClient, make_product) -> None:
        product = make_product(title="Oxford")
        response = client.get(f"{URL}/{product.id}")
        assert response.status_code == 200
        assert response.json()["title"] == "Oxford"

    def test_not_found(self, client: TestClient) -> None:
        response = client.get(f"{URL}/{uuid.uuid4()}")
        assert response.status_code == 404
        assert response.json()["message"] == "Product not found"


class TestCreateProduct:
    """Tests for POST /products."""

    def test_created(self, admin_client: TestClient, image_store: FakeImageStore) -> None:
        response = admin_client.post(URL, data=FIELDS, files=_files(b"one", b"two"))

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Product created successfully"
        product = body["product"]
        assert product["stock"] == 0
        assert product["price"] == 89.9
        assert sorted(product["imageUrls"]) == sorted(image_store.uploads)

        listed = admin_client.get(URL).json()
        assert listed["totalCount"] == 1

    def test_anonymous_forbidden(self, client: TestClient, image_store: FakeImageStore) -> None:
        response = client.post(URL, data=FIELDS, files=_files(b"one"))
        assert response.status_code == 403
        assert image_store.uploads == []

    def test_customer_forbidden_even_with_bad_payload(
        self, customer_client: TestClient
    ) -> None:
        response = customer_client.post(URL, data={"price": "cheap"})
        assert response.status_code == 403

    def test_missing_field(self, admin_client: TestClient) -> None:
        data = {k: v for k, v in FIELDS.items() if k != "title"}
        response = admin_client.post(URL, data=data, files=_files(b"one"))
        assert response.status_code == 400
        assert response.json()["details"]["fields"] == ["title"]

    def test_non_numeric_price(self, admin_client: TestClient) -> None:
        response = admin_client.post(
            URL, data={**FIELDS, "price": "cheap"}, files=_files(b"one")
        )
        assert response.status_code == 400

    def test_invalid_gender(self, admin_client: TestClient) -> None:
        response = admin_client.post(
            URL, data={**FIELDS, "gender": "KIDS"}, files=_files(b"one")
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid gender value"

    @pytest.mark.parametrize("price", ["nan", "inf", "-inf"])
    def test_non_finite_price(
        self, price: str, admin_client: TestClient, image_store: FakeImageStore
    ) -> None:
        response = admin_client.post(URL, data={**FIELDS, "price": price}, files=_files(b"one"))

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid price value"
        assert image_store.uploads == []
        assert admin_client.get(URL).json()["totalCount"] == 0

    def test_no_images(self, admin_client: TestClient) -> None:
        response = admin_client.post(URL, data=FIELDS)
        assert response.status_code == 400
        assert response.json()["message"] == "At least one image is required"

    def test_upload_failure_is_generic_500(
        self, admin_client: TestClient, image_store: FakeImageStore
    ) -> None:
        response = admin_client.post(URL, data=FIELDS, files=_files(b"one", BROKEN_IMAGE))

        assert response.status_code == 500
        assert response.json() == {"message": "Server error"}
        assert admin_client.get(URL).json()["totalCount"] == 0


class TestUpdateProduct:
    """Tests for PATCH /products/{id}."""

    def test_fields_only(self, admin_client: TestClient, make_product) -> None:
        product = make_product(title="Before", size="S")
        urls = list(product.image_urls)

        response = admin_client.patch(f"{URL}/{product.id}", data={"title": "After"})

        assert response.status_code == 200
        updated = response.json()["product"]
        assert updated["title"] == "After"
        assert updated["size"] == "S"
        assert updated["imageUrls"] == urls

    def test_replace_images(
        self, admin_client: TestClient, make_product, image_store: FakeImageStore
    ) -> None:
        product = make_product()

        response = admin_client.patch(f"{URL}/{product.id}", files=_files(b"fresh"))

        assert response.status_code == 200
        assert response.json()["product"]["imageUrls"] == image_store.uploads

    def test_not_found(self, admin_client: TestClient) -> None:
        response = admin_client.patch(f"{URL}/{uuid.uuid4()}", data={"title": "x"})
        assert response.status_code == 404

    def test_invalid_category(self, admin_client: TestClient, make_product) -> None:
        product = make_product()
        response = admin_client.patch(f"{URL}/{product.id}", data={"category": "HATS"})
        assert response.status_code == 400

    def test_non_finite_price(
        self, admin_client: TestClient, make_product, image_store: FakeImageStore
    ) -> None:
        product = make_product(price=15.0)
        product_id = product.id

        response = admin_client.patch(
            f"{URL}/{product_id}", data={"price": "inf"}, files=_files(b"fresh")
        )

        assert response.status_code == 400
        assert image_store.uploads == []
        assert admin_client.get(f"{URL}/{product_id}").json()["price"] == 15.0

    def test_customer_forbidden(self, customer_client: TestClient, make_product) -> None:
        product = make_product()
        response = customer_client.patch(f"{URL}/{product.id}", data={"title": "x"})
        assert response.status_code == 403


class TestDeleteProduct:
    """Tests for DELETE /products/{id}."""

    def test_deleted(
        self, admin_client: TestClient, make_product, image_store: FakeImageStore
    ) -> None:
        product = make_product()
        product_id = product.id

        response = admin_client.delete(f"{URL}/{product_id}")

        assert response.status_code == 200
        assert response.json() == {"message": "Product deleted"}
        assert len(image_store.destroyed) == 2
        assert admin_client.get(f"{URL}/{product_id}").status_code == 404

    def test_not_found(self, admin_client: TestClient, image_store: FakeImageStore) -> None:
        response = admin_client.delete(f"{URL}/{uuid.uuid4()}")
        assert response.status_code == 404
        assert image_store.destroyed == []

    def test_anonymous_forbidden(self, client: TestClient, make_product) -> None:
        product = make_product()
        product_id = product.id
        assert client.delete(f"{URL}/{product_id}").status_code == 403
        assert client.get(f"{URL}/{product_id}").status_code == 200


class _BrokenSession:
    def get(self, *args, **kwargs):
        raise RuntimeError("connection reset by peer")


class TestUnexpectedErrors:
    @pytest.fixture
    def broken_client(self, client_as, admin) -> Iterator[TestClient]:
        client = client_as(admin, raise_server_exceptions=False)
        app.dependency_overrides[get_session] = lambda: _BrokenSession()
        yield client

    def test_internal_detail_not_leaked(self, broken_client: TestClient) -> None:
        response = broken_client.delete(f"{URL}/{uuid.uuid4()}")
        assert response.status_code == 500
        assert response.json() == {"message": "Server error"}
        assert "connection reset" not in response.text
