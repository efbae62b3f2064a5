"""
otpdesk/api/employees.py

Purpose: Employee management endpoints
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from otpdesk.schemas.employee import CreateEmployeeRequest, UpdateEmployeeStatusRequest
from otpdesk.schemas.response import serialize_document
from otpdesk.services import employee_service

router = APIRouter(prefix="/employees")


@router.get("")
async def list_employees():
    employees = await employee_service.list_employees()
    return {"success": True, "employees": [serialize_document(e) for e in employees]}


@router.post("", status_code=201)
async def add_employee(body: CreateEmployeeRequest):
    employee = await employee_service.create_employee(
        name=body.name,
        username=body.username,
        email=body.email,
        password=body.password,
    )
    return JSONResponse(
        status_code=201,
        content={
            "success": True,
            "message": "Employee added successfully",
            "employee": serialize_document(employee),
        }
    )


@router.patch("/{employee_id}/status")
async def update_status(employee_id: str, body: UpdateEmployeeStatusRequest):
    employee = await employee_service.update_employee_status(employee_id, body.status)
    return {
        "success": True,
        "message": "Employee status updated",
        "employee": serialize_document(employee),
    }


@router.delete("/{employee_id}")
async def delete_employee(employee_id: str):
    """
    Deletes the employee and cascades to all of their orders.
    """
    deleted_orders = await employee_service.delete_employee(employee_id)
    return {
        "success": True,
        "message": "Employee and their orders deleted successfully",
        "deletedOrders": deleted_orders,
    }
