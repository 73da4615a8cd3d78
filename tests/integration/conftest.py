import pytest
from fastapi.testclient import TestClient
from storefront.api.app import create_app


@pytest.fixture()
def client(services):
    app = create_app(services=services, init_domain=False)
    return TestClient(app)


@pytest.fixture()
def register_product(client):
    def _register(name="Espresso Beans", price=12.5, stock=10):
        response = client.post("/products", json={"name": name, "price": price, "stock_available": stock})
        assert response.status_code == 201
        return response.json()["product_id"]

    return _register
