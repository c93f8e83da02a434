from decimal import Decimal

import pytest
from sqlalchemy import func, select

from conftest import auth_headers, image
from storefront.application.errors import NotFound, UploadFailed, ValidationError
from storefront.application.order_service import OrderService
from storefront.application.address_store import AddressStore
from storefront.application.query import PageRequest
from storefront.application.schemas import AddressIn, OrderCreate, OrderItemIn, ProductCreate, ProductUpdate
from storefront.domain.models import Product
from storefront.domain.status import PaymentMethod


def product_count(db):
    return db.scalar(select(func.count()).select_from(Product))


def new_product(category_id, **overrides):
    data = dict(name="Runner", description="Light running shoe", price=Decimal("59.90"), stock=4, category_id=category_id)
    data.update(overrides)
    return ProductCreate(**data)


class TestCreateProduct:
    def test_create(self, product_service, media, make_category):
        category = make_category(name="Shoes")

        created = product_service.create(new_product(category.id), [image("a.jpg"), image("b.jpg")])

        assert created.price == 59.9
        assert created.category.name == "Shoes"
        assert len(created.images) == 2
        assert all(name in media.files for name in created.images)
        assert created.image_urls == [f"http://media.test/{name}" for name in created.images]

    def test_at_least_one_image(self, db, product_service, make_category):
        category = make_category()

        with pytest.raises(ValidationError):
            product_service.create(new_product(category.id), [])

        assert product_count(db) == 0

    def test_unknown_category(self, db, product_service, media):
        with pytest.raises(NotFound):
            product_service.create(new_product(404), [image()])

        assert media.events == []

    @pytest.mark.parametrize("overrides", [
        {"name": ""},
        {"description": "  "},
        {"price": None},
        {"price": Decimal("-1")},
        {"stock": -3},
    ])
    def test_invalid_fields(self, db, product_service, media, make_category, overrides):
        category = make_category()

        with pytest.raises(ValidationError):
            product_service.create(new_product(category.id, **overrides), [image()])

        assert product_count(db) == 0
        assert media.events == []

    def test_failed_upload_creates_nothing(self, db, product_service, media, make_category):
        category = make_category()
        media.fail_uploads = True

        with pytest.raises(UploadFailed):
            product_service.create(new_product(category.id), [image()])

        assert product_count(db) == 0


class TestUpdateProduct:
    def test_partial_update(self, product_service, make_product):
        product = make_product(name="Runner", price="10.00", stock=5)

        updated = product_service.update(product.id, ProductUpdate(stock=9))

        assert updated.stock == 9
        assert updated.price == 10.0
        assert updated.images == ["runner-1.jpg", "runner-2.jpg"]

    def test_new_images_replace_old_after_commit(self, product_service, media, make_product):
        product = make_product(name="Runner")

        updated = product_service.update(product.id, ProductUpdate(), [image("new.jpg")])

        assert len(updated.images) == 1
        assert media.events == [
            ("upload", updated.images[0]),
            ("remove", "runner-1.jpg"),
            ("remove", "runner-2.jpg"),
        ]

    def test_move_to_unknown_category(self, product_service, make_product):
        product = make_product()

        with pytest.raises(NotFound):
            product_service.update(product.id, ProductUpdate(category_id=999))

    def test_negative_price(self, product_service, make_product):
        product = make_product()

        with pytest.raises(ValidationError):
            product_service.update(product.id, ProductUpdate(price=Decimal("-0.01")))

    def test_unknown_product(self, product_service):
        with pytest.raises(NotFound):
            product_service.update(1, ProductUpdate(name="Ghost"))


class TestDeleteProduct:
    def test_delete_removes_images(self, db, product_service, media, make_product):
        product = make_product(name="Runner")

        product_service.delete(product.id)

        db.expire_all()
        assert db.get(Product, product.id) is None
        assert media.events == [("remove", "runner-1.jpg"), ("remove", "runner-2.jpg")]

    def test_ordered_product_is_kept(self, db, product_service, media, notifier, make_product):
        product = make_product()
        OrderService(db, AddressStore(db), product_service, media, notifier).create(OrderCreate(
            items=[OrderItemIn(product_id=product.id, quantity=1)],
            shipping_address=AddressIn(street="1 Main St", city="Springfield", state="IL"),
            billing_address=AddressIn(street="1 Main St", city="Springfield", state="IL"),
            payment_method=PaymentMethod.ONLINE,
            name="Buyer",
            email="buyer@example.com",
            phone="555-0101",
        ))

        with pytest.raises(ValidationError):
            product_service.delete(product.id)

        assert db.get(Product, product.id) is not None
        assert media.events == []


class TestListProducts:
    def test_by_category(self, product_service, make_category, make_product):
        shoes = make_category(name="Shoes")
        hats = make_category(name="Hats")
        make_product(name="Runner", category=shoes)
        make_product(name="Boot", category=shoes)
        make_product(name="Beanie", category=hats)

        page = product_service.list_by_category(shoes.id, PageRequest())

        assert [p.name for p in page.items] == ["Boot", "Runner"]
        assert page.pagination.total == 2

    def test_by_unknown_category(self, product_service):
        with pytest.raises(NotFound):
            product_service.list_by_category(12, PageRequest())


class TestProductApi:
    def test_create_with_multiple_images(self, client, admin, media, make_category):
        category = make_category(name="Shoes")

        response = client.post(
            "/product",
            data={"name": "Runner", "description": "Light", "price": "59.90", "stock": "3", "category_id": str(category.id)},
            files=[
                ("images", ("a.jpg", b"a-bytes", "image/jpeg")),
                ("images", ("b.jpg", b"b-bytes", "image/jpeg")),
            ],
            headers=auth_headers(admin),
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["price"] == 59.9
        assert data["category"] == {"id": category.id, "name": "Shoes"}
        assert len(data["images"]) == 2

    def test_create_requires_admin(self, client, customer, make_category):
        category = make_category()

        response = client.post(
            "/product",
            data={"name": "Runner", "description": "Light", "price": "1", "category_id": str(category.id)},
            files=[("images", ("a.jpg", b"a-bytes", "image/jpeg"))],
            headers=auth_headers(customer),
        )

        assert response.status_code == 403

    def test_paginated_listing(self, client, make_category, make_product):
        category = make_category(name="Shoes")
        for i in range(12):
            make_product(name=f"Shoe {i:02d}", category=category)

        body = client.get("/product", params={"page": 2, "limit": 5, "filter": "ztoa"}).json()

        assert [p["name"] for p in body["data"]] == [f"Shoe {i:02d}" for i in (6, 5, 4, 3, 2)]
        assert body["pagination"] == {
            "total": 12, "page": 2, "limit": 5, "total_pages": 3, "has_next": True, "has_prev": True,
        }

    def test_search(self, client, make_category, make_product):
        category = make_category(name="Shoes")
        make_product(name="Runner", category=category)
        make_product(name="Boot", category=category)

        body = client.get("/product", params={"search": "ru"}).json()

        assert [p["name"] for p in body["data"]] == ["Runner"]

    def test_limit_out_of_range(self, client):
        response = client.get("/product", params={"limit": 0})

        assert response.status_code == 400
        assert response.json()["error"] == "ValidationError"

    def test_unknown_product(self, client):
        response = client.get("/product/404")

        assert response.status_code == 404
        assert response.json()["error"] == "NotFound"

    def test_unknown_category_listing(self, client):
        assert client.get("/product/category/404").status_code == 404
