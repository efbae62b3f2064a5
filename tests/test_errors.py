from fastapi.testclient import TestClient
from otpdesk.main import app
import pytest

client = TestClient(app, raise_server_exceptions=False)


def test_404_not_found():
    response = client.get("/api/non-existent-route")
    assert response.status_code == 404
    data = response.json()
    assert data["success"] is False
    assert data["error"] == "HTTP_ERROR"
    assert "message" in data


def test_validation_error_structure():
    # Temporary route to exercise request validation
    from pydantic import BaseModel
    
    class Item(BaseModel):
        name: str
        price: int

    @app.post("/test-validation")
    def create_item(item: Item):
        return item

    response = client.post("/test-validation", json={"name": "foo", "price": "invalid"})
    assert response.status_code == 400
    data = response.json()
    assert data["error"] == "VALIDATION_ERROR"
    assert "details" in data
    assert len(data["details"]) > 0


def test_custom_exception():
    from otpdesk.core.exceptions import ResourceNotFoundError
    
    @app.get("/test-custom-error")
    def trigger_custom_error():
        raise ResourceNotFoundError(message="Order not found", details={"orderId": "12345"})

    response = client.get("/test-custom-error")
    assert response.status_code == 404
    data = response.json()
    assert data == {
        "success": False,
        "message": "Order not found",
        "error": "NOT_FOUND",
        "details": {"orderId": "12345"},
    }


def test_provider_rejection_carries_raw_text():
    from otpdesk.core.exceptions import ProviderRejectedError
    
    @app.get("/test-provider-error")
    def trigger_provider_error():
        raise ProviderRejectedError("NO_BALANCE")

    response = client.get("/test-provider-error")
    assert response.status_code == 400
    data = response.json()
    assert data["message"] == "API Error: NO_BALANCE"
    assert data["error"] == "PROVIDER_ERROR"
    assert data["details"] == "NO_BALANCE"


def test_unhandled_exception():
    @app.get("/test-unhandled")
    def trigger_unhandled():
        raise RuntimeError("boom")

    response = client.get("/test-unhandled")
    assert response.status_code == 500
    data = response.json()
    assert data["message"] == "Something went wrong!"
    assert data["error"] == "INTERNAL_ERROR"
