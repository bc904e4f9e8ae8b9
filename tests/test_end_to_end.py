from fastapi.testclient import TestClient

from storefront.main import create_app


def test_category_product_lifecycle(client):
    r = client.post("/categories", json={"name": "Books"})
    assert r.status_code == 201
    cid = r.json()["id"]

    r = client.post("/products", json={"name": "Novel", "price": 9.99, "category_id": cid})
    assert r.status_code == 201

    r = client.get("/products?min_price=5&max_price=10")
    assert r.status_code == 200
    assert "Novel" in [p["name"] for p in r.json()]

    r = client.delete(f"/categories/{cid}")
    assert r.status_code == 200

    r = client.get(f"/categories/{cid}")
    assert r.status_code == 404


def test_unknown_route_uses_error_body(client):
    r = client.get("/nowhere")
    assert r.status_code == 404
    assert r.json() == {"error": "Not Found"}


def test_non_numeric_id_is_invalid_input(client):
    r = client.get("/products/abc")
    assert r.status_code == 400
    assert r.json() == {"error": "Invalid input"}


def test_health_and_metrics(client):
    assert client.get("/health").text == "ok"
    client.get("/categories")
    r = client.get("/metrics")
    assert r.status_code == 200
    assert "http_requests_total" in r.text


def test_api_prefix(db):
    with TestClient(create_app(db, prefix="/api/store")) as c:
        assert c.post("/api/store/categories", json={"name": "Books"}).status_code == 201
        assert c.get("/categories").status_code == 404
