"""
otpdesk/services/auth_service.py

Purpose: Credential checks

- Employee login (active accounts only)
- Admin login, provisioning the default admin on first use
"""

from typing import Dict, Any

from passlib.hash import pbkdf2_sha256
from pymongo.errors import DuplicateKeyError

from otpdesk.db.mongo import get_employees_collection, get_admins_collection
from otpdesk.models.employee import EmployeeStatus, public_employee
from otpdesk.core.config import settings
from otpdesk.core.exceptions import AuthenticationError, ValidationError
from otpdesk.core.logging import get_logger
from otpdesk.utils.time_utils import utcnow

logger = get_logger(__name__)


def _verify(password: str, password_hash: str) -> bool:
    try:
        return pbkdf2_sha256.verify(password or "", password_hash or "")
    except ValueError:
        # Malformed hash in the store
        return False


async def authenticate_employee(username: str, password: str) -> Dict[str, Any]:
    """
    Checks employee credentials.
    
    Returns:
        Public identity of the employee
    
    Raises:
        AuthenticationError: Unknown user, wrong password or inactive account
    """
    if not username or not password:
        raise ValidationError("Username and password are required")
    
    employees = get_employees_collection()
    employee = await employees.find_one({"username": username.strip().lower()})
    
    if (
        not employee
        or employee.get("status") != EmployeeStatus.ACTIVE.value
        or not _verify(password, employee.get("passwordHash"))
    ):
        logger.info(f"Employee login rejected for {username}")
        raise AuthenticationError("Invalid username or password, or account is inactive.")
    
    logger.info("Employee logged in", extra={"employee_id": str(employee["_id"])})
    return public_employee(employee)


async def ensure_default_admin() -> None:
    """
    Creates the default admin account when no admin exists yet.
    """
    admins = get_admins_collection()
    if await admins.find_one({}) is not None:
        return
    
    try:
        await admins.insert_one({
            "username": settings.ADMIN_USERNAME,
            "passwordHash": pbkdf2_sha256.hash(settings.ADMIN_PASSWORD),
            "createdAt": utcnow(),
        })
        logger.warning(f"Default admin '{settings.ADMIN_USERNAME}' provisioned")
    except DuplicateKeyError:
        # Created concurrently
        pass


async def authenticate_admin(username: str, password: str) -> Dict[str, Any]:
    """
    Checks admin credentials.
    
    Raises:
        AuthenticationError: Credentials do not match
    """
    if not username or not password:
        raise ValidationError("Username and password are required")
    
    await ensure_default_admin()
    
    admins = get_admins_collection()
    admin = await admins.find_one({"username": username})
    
    if not admin or not _verify(password, admin.get("passwordHash")):
        logger.info(f"Admin login rejected for {username}")
        raise AuthenticationError("Invalid admin credentials.")
    
    return {"username": admin["username"], "role": "admin"}
