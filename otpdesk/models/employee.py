"""
otpdesk/models/employee.py

Purpose: Employee account model

- EmployeeStatus enum
- Public projection of an employee document (no password hash)
"""

from enum import Enum
from typing import Any, Dict


class EmployeeStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


def public_employee(employee: Dict[str, Any]) -> Dict[str, Any]:
    """
    Identity object handed to a logged-in employee.
    """
    return {
        "id": str(employee["_id"]),
        "username": employee["username"],
        "name": employee["name"],
        "email": employee.get("email"),
    }
