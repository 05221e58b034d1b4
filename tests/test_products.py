import products
from config import settings
from conftest import register


def test_create_product(client, product, category):
    assert product["name"] == "Luxury Sofa"
    assert product["category"] == category["id"]
    assert product["category_name"] == "Sofas"
    assert product["num_reviews"] == 0


def test_create_product_by_category_slug(make_product, category):
    created = make_product(category="sofas")
    assert created["category"] == category["id"]


def test_create_product_unknown_category(client, admin):
    data = {"name": "Chair", "description": "Oak", "price": 100, "stock": 1, "category": "64b000000000000000000000"}
    assert client.post("/products", json=data, headers=admin).status_code == 400


def test_create_product_discount_above_price(client, admin, category):
    data = {"name": "Chair", "description": "Oak", "price": 100, "discount_price": 150, "stock": 1, "category": category["id"]}
    assert client.post("/products", json=data, headers=admin).status_code == 400


def test_create_product_negative_stock(client, admin, category):
    data = {"name": "Chair", "description": "Oak", "price": 100, "stock": -1, "category": category["id"]}
    assert client.post("/products", json=data, headers=admin).status_code == 422


def test_create_product_requires_admin(client, user, category):
    data = {"name": "Chair", "description": "Oak", "price": 100, "stock": 1, "category": category["id"]}
    assert client.post("/products", json=data, headers=user).status_code == 403
    assert client.post("/products", json=data).status_code == 401


def test_get_product_missing_or_malformed(client):
    assert client.get("/products/64b000000000000000000000").status_code == 404
    assert client.get("/products/not-an-id").status_code == 404


def test_list_products_pagination(client, make_product):
    for i in range(5):
        make_product(name=f"Chair {i}", price=100 + i)
    response = client.get("/products", params={"limit": 2, "page": 2, "sort": "price_asc"})
    body = response.json()
    assert body["total"] == 5
    assert body["pages"] == 3
    assert [p["name"] for p in body["items"]] == ["Chair 2", "Chair 3"]


def test_list_products_filters(client, admin, make_product):
    tables = client.post("/categories", json={"name": "Tables"}, headers=admin).json()
    make_product(name="Oak Table", price=5000, category=tables["id"], featured=True)
    make_product(name="Pine Table", price=1500, category=tables["id"], stock=0)
    make_product(name="Velvet Sofa", price=9000)

    def names(**params):
        return sorted(p["name"] for p in client.get("/products", params=params).json()["items"])

    assert names(category="tables") == ["Oak Table", "Pine Table"]
    assert names(featured="true") == ["Oak Table"]
    assert names(search="TABLE") == ["Oak Table", "Pine Table"]
    assert names(min_price=2000, max_price=9000) == ["Oak Table", "Velvet Sofa"]
    assert names(in_stock="true") == ["Oak Table", "Velvet Sofa"]
    assert names(category="no-such-category") == []


def test_list_products_sort_by_price_desc(client, make_product):
    make_product(name="Cheap", price=10)
    make_product(name="Dear", price=1000)
    items = client.get("/products", params={"sort": "price_desc"}).json()["items"]
    assert [p["name"] for p in items] == ["Dear", "Cheap"]


def test_update_product_partial(client, admin, product):
    response = client.put(f"/products/{product['id']}", json={"stock": 9, "color": "Grey"}, headers=admin)
    assert response.status_code == 200
    body = response.json()
    assert body["stock"] == 9
    assert body["color"] == "Grey"
    assert body["name"] == "Luxury Sofa"


def test_update_product_checks_merged_discount(client, admin, make_product):
    created = make_product(price=1000, discount_price=800)
    response = client.put(f"/products/{created['id']}", json={"price": 500}, headers=admin)
    assert response.status_code == 400
    response = client.put(f"/products/{created['id']}", json={"price": 500, "discount_price": None}, headers=admin)
    assert response.status_code == 200
    assert response.json()["discount_price"] is None


def test_update_product_move_category(client, admin, product):
    beds = client.post("/categories", json={"name": "Beds"}, headers=admin).json()
    response = client.put(f"/products/{product['id']}", json={"category": "beds"}, headers=admin)
    assert response.json()["category"] == beds["id"]
    assert response.json()["category_name"] == "Beds"


def test_delete_product(client, admin, product):
    assert client.delete(f"/products/{product['id']}", headers=admin).status_code == 200
    assert client.get(f"/products/{product['id']}").status_code == 404
    assert client.delete(f"/products/{product['id']}", headers=admin).status_code == 404


def test_upload_and_remove_product_images(client, admin, product):
    response = client.post(
        f"/products/{product['id']}/images",
        files=[("files", ("a.jpg", b"one", "image/jpeg")), ("files", ("b.webp", b"two", "image/webp"))],
        headers=admin,
    )
    assert response.status_code == 200
    images = response.json()["images"]
    assert len(images) == 2

    response = client.delete(f"/products/{product['id']}/images", params={"url": images[0]}, headers=admin)
    assert response.json()["images"] == images[1:]
    assert client.get(images[0]).status_code == 404


def test_reviews_update_rating(client, product, user):
    other = register(client, name="Ravi", email="ravi@example.com")
    assert client.post(f"/products/{product['id']}/reviews", json={"rating": 5, "comment": "Great"}, headers=user).status_code == 201
    assert client.post(f"/products/{product['id']}/reviews", json={"rating": 2, "comment": "Meh"}, headers=other).status_code == 201

    body = client.get(f"/products/{product['id']}/reviews").json()
    assert body["num_reviews"] == 2
    assert body["rating"] == 3.5
    assert [r["name"] for r in body["reviews"]] == ["Jane", "Ravi"]


def test_one_review_per_user(client, product, user):
    client.post(f"/products/{product['id']}/reviews", json={"rating": 4, "comment": "Nice"}, headers=user)
    response = client.post(f"/products/{product['id']}/reviews", json={"rating": 1, "comment": "Again"}, headers=user)
    assert response.status_code == 400


def test_review_rating_bounds(client, product, user):
    response = client.post(f"/products/{product['id']}/reviews", json={"rating": 6, "comment": "Wow"}, headers=user)
    assert response.status_code == 422


def test_review_with_stale_read_is_rejected(client, product, user, monkeypatch):
    stale = products.get_product_or_404(product["id"])
    client.post(f"/products/{product['id']}/reviews", json={"rating": 4, "comment": "Nice"}, headers=user)

    monkeypatch.setattr(products, "get_product_or_404", lambda product_id: stale)
    response = client.post(f"/products/{product['id']}/reviews", json={"rating": 1, "comment": "Again"}, headers=user)
    assert response.status_code == 400

    body = client.get(f"/products/{product['id']}/reviews").json()
    assert body["num_reviews"] == 1
    assert body["rating"] == 4.0


def test_oversized_image_rejected(client, admin, product, monkeypatch):
    monkeypatch.setattr(settings, "max_upload_mb", 1)
    big = b"x" * (1024 * 1024 + 1)
    response = client.post(
        f"/products/{product['id']}/images",
        files=[("files", ("big.jpg", big, "image/jpeg"))],
        headers=admin,
    )
    assert response.status_code == 413
    assert response.json()["detail"] == "Image exceeds 1 MB"
    assert client.get(f"/products/{product['id']}").json()["images"] == []
