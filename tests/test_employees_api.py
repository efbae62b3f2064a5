def _create(client, username="priya", name="Priya Sharma"):
    return client.post("/api/employees", json={
        "name": name,
        "username": username,
        "email": f"{username}@example.com",
        "password": "s3cret",
    })


def test_create_and_list_employees(client):
    response = _create(client, username="Priya")
    assert response.status_code == 201
    data = response.json()
    assert data["success"] is True
    assert data["employee"]["username"] == "priya"
    assert data["employee"]["status"] == "active"
    assert "passwordHash" not in data["employee"]
    assert "password" not in data["employee"]
    
    listed = client.get("/api/employees").json()
    assert [e["username"] for e in listed["employees"]] == ["priya"]


def test_duplicate_username_is_rejected(client):
    _create(client, username="priya")
    
    response = _create(client, username="PRIYA")
    
    assert response.status_code == 400
    data = response.json()
    assert data["success"] is False
    assert data["message"] == "Username already exists!"
    assert data["error"] == "VALIDATION_ERROR"


def test_missing_fields_are_rejected(client):
    response = client.post("/api/employees", json={"name": "No Username"})
    
    assert response.status_code == 400
    assert response.json()["error"] == "VALIDATION_ERROR"


def test_update_status(client):
    employee_id = _create(client).json()["employee"]["_id"]
    
    response = client.patch(f"/api/employees/{employee_id}/status", json={"status": "inactive"})
    
    assert response.status_code == 200
    assert response.json()["employee"]["status"] == "inactive"
    
    bad = client.patch(f"/api/employees/{employee_id}/status", json={"status": "retired"})
    assert bad.status_code == 400


def test_update_status_unknown_employee(client):
    response = client.patch("/api/employees/665f1c2e9b1e8a3d4c2b1a00/status", json={"status": "inactive"})
    
    assert response.status_code == 404
    assert response.json()["error"] == "NOT_FOUND"


def test_delete_cascades_to_orders(client, provider):
    employee = _create(client).json()["employee"]
    other = _create(client, username="rahul", name="Rahul").json()["employee"]
    
    for n, owner in enumerate([employee, employee, employee, other], start=1):
        provider.queue("getNumber", f"ACCESS_NUMBER:{n}:91999999999{n}")
        response = client.post("/api/orders/request", json={
            "employeeId": owner["_id"],
            "employeeName": owner["name"],
        })
        assert response.status_code == 201
    
    response = client.delete(f"/api/employees/{employee['_id']}")
    
    assert response.status_code == 200
    assert response.json()["deletedOrders"] == 3
    assert client.get(f"/api/orders/employee/{employee['_id']}").json()["orders"] == []
    assert len(client.get("/api/orders").json()["orders"]) == 1
    
    again = client.delete(f"/api/employees/{employee['_id']}")
    assert again.status_code == 404


def test_delete_cascades_to_orders_requested_with_upper_case_id(client, provider):
    employee = _create(client).json()["employee"]
    provider.queue("getNumber", "ACCESS_NUMBER:12345:919999999999")
    
    response = client.post("/api/orders/request", json={
        "employeeId": employee["_id"].upper(),
        "employeeName": employee["name"],
    })
    assert response.status_code == 201
    assert response.json()["order"]["employeeId"] == employee["_id"]
    
    deleted = client.delete(f"/api/employees/{employee['_id']}").json()
    
    assert deleted["deletedOrders"] == 1
    assert client.get("/api/orders").json()["orders"] == []
