"""
otpdesk/schemas/employee.py

Purpose: Employee management payloads
"""

from pydantic import BaseModel, Field
from otpdesk.models.employee import EmployeeStatus


class CreateEmployeeRequest(BaseModel):
    name: str = Field(..., min_length=1)
    username: str = Field(..., min_length=1)
    email: str = Field(default="")
    password: str = Field(..., min_length=1)


class UpdateEmployeeStatusRequest(BaseModel):
    status: EmployeeStatus
