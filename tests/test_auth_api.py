def _create(client, username="priya", password="s3cret"):
    return client.post("/api/employees", json={
        "name": "Priya Sharma",
        "username": username,
        "email": "priya@example.com",
        "password": password,
    }).json()["employee"]


def test_employee_login(client):
    created = _create(client)
    
    response = client.post("/api/auth/employee/login", json={"username": "Priya", "password": "s3cret"})
    
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["employee"] == {
        "id": created["_id"],
        "username": "priya",
        "name": "Priya Sharma",
        "email": "priya@example.com",
    }


def test_employee_login_wrong_password(client):
    _create(client)
    
    response = client.post("/api/auth/employee/login", json={"username": "priya", "password": "nope"})
    
    assert response.status_code == 401
    data = response.json()
    assert data["success"] is False
    assert data["error"] == "AUTHENTICATION_FAILED"


def test_inactive_employee_cannot_login(client):
    created = _create(client)
    client.patch(f"/api/employees/{created['_id']}/status", json={"status": "inactive"})
    
    response = client.post("/api/auth/employee/login", json={"username": "priya", "password": "s3cret"})
    
    assert response.status_code == 401


def test_password_is_stored_hashed(client, db):
    import asyncio
    
    _create(client)
    stored = asyncio.run(db["employees"].find_one({"username": "priya"}))
    
    assert "password" not in stored
    assert stored["passwordHash"] != "s3cret"
    assert stored["passwordHash"].startswith("$pbkdf2-sha256$")


def test_default_admin_login(client):
    response = client.post("/api/auth/admin/login", json={"username": "admin", "password": "admin123"})
    
    assert response.status_code == 200
    assert response.json()["admin"] == {"username": "admin", "role": "admin"}


def test_admin_login_rejected(client):
    response = client.post("/api/auth/admin/login", json={"username": "admin", "password": "guess"})
    
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid admin credentials."
