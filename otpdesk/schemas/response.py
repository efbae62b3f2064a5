"""
otpdesk/schemas/response.py

Purpose: Shared response shapes

- Standard error body
- Conversion of Mongo documents into JSON-safe dicts
"""

from pydantic import BaseModel
from bson import ObjectId
from datetime import datetime
from typing import Optional, Any, Dict


class ErrorResponse(BaseModel):
    """
    Standard error response structure.
    """
    success: bool = False
    message: str
    error: Optional[str] = None
    details: Optional[Any] = None


def serialize_document(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """
    Makes a Mongo document JSON-safe.

    ObjectIds become hex strings, datetimes become ISO strings, and
    password hashes never leave the service layer.
    """
    if doc is None:
        return None
    
    result = {}
    for key, value in doc.items():
        if key == "passwordHash":
            continue
        if isinstance(value, ObjectId):
            result[key] = str(value)
        elif isinstance(value, datetime):
            result[key] = value.isoformat()
        else:
            result[key] = value
    return result
