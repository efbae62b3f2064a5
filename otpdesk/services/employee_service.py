"""
otpdesk/services/employee_service.py

Purpose: Employee account management

- Create employees (unique, lower-cased usernames; hashed passwords)
- Activate / deactivate accounts
- Delete an employee together with all of their orders
"""

from typing import Dict, Any, List

from bson import ObjectId
from bson.errors import InvalidId
from passlib.hash import pbkdf2_sha256
from pymongo import ReturnDocument, DESCENDING
from pymongo.errors import DuplicateKeyError

from otpdesk.db.mongo import get_employees_collection, get_orders_collection
from otpdesk.models.employee import EmployeeStatus
from otpdesk.core.exceptions import ValidationError, ResourceNotFoundError
from otpdesk.core.logging import get_logger, LogContext
from otpdesk.utils.time_utils import utcnow

logger = get_logger(__name__)


def _object_id(employee_id: str) -> ObjectId:
    try:
        return ObjectId(employee_id)
    except (InvalidId, TypeError):
        raise ResourceNotFoundError("Employee not found", details={"employeeId": employee_id})


async def list_employees() -> List[Dict[str, Any]]:
    """
    Returns all employees, most recently created first.
    """
    employees = get_employees_collection()
    return await employees.find().sort("createdDate", DESCENDING).to_list(length=None)


async def create_employee(name: str, username: str, email: str, password: str) -> Dict[str, Any]:
    """
    Creates an active employee account.
    
    Raises:
        ValidationError: Missing fields or username already taken
    """
    if not name or not username or not password:
        raise ValidationError("Name, username and password are required")
    
    username = username.strip().lower()
    employees = get_employees_collection()
    
    if await employees.find_one({"username": username}):
        raise ValidationError("Username already exists!")
    
    employee = {
        "name": name.strip(),
        "username": username,
        "email": (email or "").strip().lower(),
        "passwordHash": pbkdf2_sha256.hash(password),
        "status": EmployeeStatus.ACTIVE.value,
        "createdDate": utcnow(),
    }
    
    try:
        await employees.insert_one(employee)
    except DuplicateKeyError:
        raise ValidationError("Username already exists!")
    
    logger.info(f"Employee created: {username}", extra={"employee_id": str(employee["_id"])})
    return employee


async def update_employee_status(employee_id: str, status: EmployeeStatus) -> Dict[str, Any]:
    """
    Activates or deactivates an employee.
    """
    with LogContext(employee_id=employee_id):
        employees = get_employees_collection()
        employee = await employees.find_one_and_update(
            {"_id": _object_id(employee_id)},
            {"$set": {"status": EmployeeStatus(status).value}},
            return_document=ReturnDocument.AFTER
        )
        if not employee:
            raise ResourceNotFoundError("Employee not found", details={"employeeId": employee_id})
        
        logger.info(f"Employee status set to {employee['status']}")
        return employee


async def delete_employee(employee_id: str) -> int:
    """
    Deletes an employee and every order they own.
    
    Returns:
        Number of orders deleted
    """
    with LogContext(employee_id=employee_id):
        oid = _object_id(employee_id)
        employees = get_employees_collection()
        result = await employees.delete_one({"_id": oid})
        if result.deleted_count == 0:
            raise ResourceNotFoundError("Employee not found", details={"employeeId": employee_id})
        
        orders = get_orders_collection()
        deleted = await orders.delete_many({"employeeId": str(oid)})
        
        logger.info(f"Employee deleted with {deleted.deleted_count} orders")
        return deleted.deleted_count
