import pytest
from sqlalchemy import func, select

from conftest import auth_headers, image
from storefront.application.errors import NotFound, UploadFailed, ValidationError
from storefront.application.query import PageRequest
from storefront.application.schemas import CategoryCreate, CategoryUpdate
from storefront.domain.models import Category


def category_count(db):
    return db.scalar(select(func.count()).select_from(Category))


class TestCreateCategory:
    def test_create_root_category(self, category_service, media, admin):
        created = category_service.create(
            CategoryCreate(name="Shoes", slug="shoes", description="All shoes"), image("shoes.png"), created_by=admin.id
        )

        assert created.name == "Shoes"
        assert created.parent_category_id is None
        assert created.created_by_id == admin.id
        assert created.image in media.files
        assert created.image_url == f"http://media.test/{created.image}"
        assert category_service.get(created.id).slug == "shoes"

    def test_create_child_category(self, category_service, make_category):
        parent = make_category(name="Shoes")

        child = category_service.create(
            CategoryCreate(name="Sneakers", slug="sneakers", parent_category_id=parent.id), image()
        )

        assert child.parent_category_id == parent.id

    @pytest.mark.parametrize("payload", [
        CategoryCreate(name="", slug="shoes"),
        CategoryCreate(name="   ", slug="shoes"),
        CategoryCreate(name="Shoes", slug=""),
    ])
    def test_name_and_slug_required(self, db, category_service, media, payload):
        with pytest.raises(ValidationError):
            category_service.create(payload, image())

        assert category_count(db) == 0
        assert media.events == []

    def test_image_required(self, category_service):
        with pytest.raises(ValidationError):
            category_service.create(CategoryCreate(name="Shoes", slug="shoes"), None)

    def test_unknown_parent(self, db, category_service, media):
        with pytest.raises(NotFound):
            category_service.create(CategoryCreate(name="Shoes", slug="shoes", parent_category_id=77), image())

        assert category_count(db) == 0
        assert media.events == []

    def test_duplicate_slug(self, category_service, make_category):
        make_category(name="Shoes", slug="shoes")

        with pytest.raises(ValidationError):
            category_service.create(CategoryCreate(name="More Shoes", slug="shoes"), image())

    def test_failed_upload_creates_nothing(self, db, category_service, media):
        media.fail_uploads = True

        with pytest.raises(UploadFailed):
            category_service.create(CategoryCreate(name="Shoes", slug="shoes"), image())

        assert category_count(db) == 0

    def test_slug_claimed_during_upload(self, db, session_factory, category_service, media):
        upload = media.upload

        def upload_after_competing_insert(data):
            other = session_factory()
            other.add(Category(name="Shoes", slug="shoes", image="theirs.png"))
            other.commit()
            other.close()
            return upload(data)

        media.upload = upload_after_competing_insert

        with pytest.raises(ValidationError):
            category_service.create(CategoryCreate(name="Shoes", slug="shoes"), image())

        assert media.files == {}
        assert [event for event, _ in media.events] == ["upload", "remove"]
        assert category_count(db) == 1


class TestUpdateCategory:
    def test_rename_keeps_other_fields(self, category_service, make_category):
        category = make_category(name="Shoes", image_name="old.png")

        updated = category_service.update(category.id, CategoryUpdate(name="Footwear"))

        assert updated.name == "Footwear"
        assert updated.slug == "shoes"
        assert updated.image == "old.png"

    def test_new_image_uploaded_before_old_removed(self, category_service, media, make_category):
        category = make_category(name="Shoes", image_name="old.png")

        updated = category_service.update(category.id, CategoryUpdate(), image("new.png"))

        assert media.events == [("upload", updated.image), ("remove", "old.png")]
        assert updated.image != "old.png"

    def test_failed_upload_keeps_old_image(self, db, category_service, media, make_category):
        category = make_category(name="Shoes", image_name="old.png")
        media.fail_uploads = True

        with pytest.raises(UploadFailed):
            category_service.update(category.id, CategoryUpdate(name="Footwear"), image("new.png"))

        db.expire_all()
        stored = db.get(Category, category.id)
        assert stored.image == "old.png"
        assert stored.name == "Shoes"

    def test_explicit_none_parent_moves_to_root(self, category_service, make_category):
        parent = make_category(name="Shoes")
        child = make_category(name="Sneakers", parent=parent)

        updated = category_service.update(child.id, CategoryUpdate(parent_category_id=None))

        assert updated.parent_category_id is None

    def test_unset_parent_is_kept(self, category_service, make_category):
        parent = make_category(name="Shoes")
        child = make_category(name="Sneakers", parent=parent)

        updated = category_service.update(child.id, CategoryUpdate(description="Running"))

        assert updated.parent_category_id == parent.id

    def test_parent_cycle_rejected(self, category_service, make_category):
        root = make_category(name="Shoes")
        child = make_category(name="Sneakers", parent=root)
        grandchild = make_category(name="Runners", parent=child)

        with pytest.raises(ValidationError):
            category_service.update(root.id, CategoryUpdate(parent_category_id=grandchild.id))
        with pytest.raises(ValidationError):
            category_service.update(root.id, CategoryUpdate(parent_category_id=root.id))

    def test_slug_taken_by_another_category(self, category_service, make_category):
        make_category(name="Shoes", slug="shoes")
        hats = make_category(name="Hats", slug="hats")

        with pytest.raises(ValidationError):
            category_service.update(hats.id, CategoryUpdate(slug="shoes"))

    def test_slug_claimed_during_update(self, session_factory, category_service, media, make_category):
        hats = make_category(name="Hats", slug="hats", image_name="hats.png")
        upload = media.upload

        def upload_after_competing_insert(data):
            other = session_factory()
            other.add(Category(name="Caps", slug="caps", image="theirs.png"))
            other.commit()
            other.close()
            return upload(data)

        media.upload = upload_after_competing_insert

        with pytest.raises(ValidationError):
            category_service.update(hats.id, CategoryUpdate(slug="caps"), image("new.png"))

        assert category_service.get(hats.id).image == "hats.png"
        assert ("remove", "hats.png") not in media.events
        assert media.files == {}

    def test_keeping_own_slug_is_allowed(self, category_service, make_category):
        shoes = make_category(name="Shoes", slug="shoes")

        assert category_service.update(shoes.id, CategoryUpdate(slug="shoes")).slug == "shoes"

    def test_unknown_category(self, category_service):
        with pytest.raises(NotFound):
            category_service.update(5, CategoryUpdate(name="Nope"))


class TestDeleteCategory:
    def test_children_move_to_root(self, db, category_service, media, make_category):
        parent = make_category(name="Shoes", image_name="shoes.png")
        child = make_category(name="Sneakers", parent=parent)

        deleted = category_service.delete(parent.id)

        assert deleted.id == parent.id
        db.expire_all()
        assert db.get(Category, parent.id) is None
        assert db.get(Category, child.id).parent_category_id is None
        assert media.events == [("remove", "shoes.png")]

    def test_failed_image_removal_still_deletes(self, db, category_service, media, make_category):
        category = make_category(name="Shoes")
        media.fail_removals = True

        category_service.delete(category.id)

        db.expire_all()
        assert db.get(Category, category.id) is None

    def test_category_with_products_is_kept(self, db, category_service, make_category, make_product):
        category = make_category(name="Shoes")
        make_product(name="Runner", category=category)

        with pytest.raises(ValidationError):
            category_service.delete(category.id)

        assert db.get(Category, category.id) is not None

    def test_unknown_category(self, category_service):
        with pytest.raises(NotFound):
            category_service.delete(31)


class TestListCategories:
    def test_roots_by_default(self, category_service, make_category):
        shoes = make_category(name="Shoes")
        make_category(name="Hats")
        make_category(name="Sneakers", parent=shoes)

        page = category_service.list_categories(PageRequest())

        assert [c.name for c in page.items] == ["Hats", "Shoes"]
        assert page.pagination.total == 2
        assert all(c.image_url for c in page.items)

    def test_children_of_parent(self, category_service, make_category):
        shoes = make_category(name="Shoes")
        make_category(name="Sneakers", parent=shoes)
        make_category(name="Boots", parent=shoes)

        page = category_service.list_categories(PageRequest(filter="ztoa"), parent_id=shoes.id)

        assert [c.name for c in page.items] == ["Sneakers", "Boots"]

    def test_names_cover_every_level(self, category_service, make_category):
        shoes = make_category(name="Shoes")
        make_category(name="Sneakers", parent=shoes)

        assert [c.name for c in category_service.names()] == ["Shoes", "Sneakers"]


class TestCategoryApi:
    def test_admin_creates_with_multipart(self, client, admin, media):
        response = client.post(
            "/category",
            data={"name": "Shoes", "slug": "shoes", "description": "All shoes"},
            files={"image": ("shoes.png", b"png-bytes", "image/png")},
            headers=auth_headers(admin),
        )

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["data"]["parent_category_id"] is None
        assert body["data"]["image"] in media.files

        fetched = client.get(f"/category/{body['data']['id']}").json()["data"]
        assert fetched["name"] == "Shoes"
        assert fetched["slug"] == "shoes"

    def test_missing_name(self, client, admin):
        response = client.post(
            "/category",
            data={"slug": "shoes"},
            files={"image": ("shoes.png", b"png-bytes", "image/png")},
            headers=auth_headers(admin),
        )

        assert response.status_code == 400
        assert response.json()["error"] == "ValidationError"

    def test_non_admin_is_forbidden(self, client, customer, media):
        response = client.post(
            "/category",
            data={"name": "Shoes", "slug": "shoes"},
            files={"image": ("shoes.png", b"png-bytes", "image/png")},
            headers=auth_headers(customer),
        )

        assert response.status_code == 403
        assert response.json()["error"] == "Unauthorized"
        assert media.events == []

    def test_anonymous_is_unauthorized(self, client):
        response = client.post("/category", data={"name": "Shoes", "slug": "shoes"})

        assert response.status_code == 401

    def test_failed_upload_maps_to_upload_failed(self, client, admin, media):
        media.fail_uploads = True

        response = client.post(
            "/category",
            data={"name": "Shoes", "slug": "shoes"},
            files={"image": ("shoes.png", b"png-bytes", "image/png")},
            headers=auth_headers(admin),
        )

        assert response.status_code == 502
        assert response.json()["error"] == "UploadFailed"

    def test_put_without_parent_moves_to_root(self, client, admin, make_category):
        parent = make_category(name="Shoes")
        child = make_category(name="Sneakers", parent=parent)

        response = client.put(f"/category/{child.id}", data={"name": "Trainers"}, headers=auth_headers(admin))

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["name"] == "Trainers"
        assert data["slug"] == "sneakers"
        assert data["parent_category_id"] is None

    def test_list_and_names(self, client, admin, make_category):
        make_category(name="Shoes")
        make_category(name="Hats")

        listing = client.get("/category", params={"filter": "ztoa"}).json()
        assert [c["name"] for c in listing["data"]] == ["Shoes", "Hats"]
        assert listing["pagination"]["total"] == 2

        assert client.get("/category/names").status_code == 401
        names = client.get("/category/names", headers=auth_headers(admin)).json()["data"]
        assert [c["name"] for c in names] == ["Hats", "Shoes"]

    def test_delete(self, client, admin, make_category):
        category = make_category(name="Shoes")

        response = client.delete(f"/category/{category.id}", headers=auth_headers(admin))

        assert response.status_code == 200
        assert client.get(f"/category/{category.id}").status_code == 404
