"""
otpdesk/api/auth.py

Purpose: Employee and admin login endpoints
"""

from fastapi import APIRouter

from otpdesk.schemas.auth import LoginRequest
from otpdesk.services import auth_service

router = APIRouter(prefix="/auth")


@router.post("/employee/login")
async def employee_login(body: LoginRequest):
    employee = await auth_service.authenticate_employee(body.username, body.password)
    return {"success": True, "message": "Login successful", "employee": employee}


@router.post("/admin/login")
async def admin_login(body: LoginRequest):
    """
    Admin login. The default admin is provisioned on first use.
    """
    admin = await auth_service.authenticate_admin(body.username, body.password)
    return {"success": True, "message": "Admin login successful", "admin": admin}
