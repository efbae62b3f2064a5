"""
otpdesk/schemas/order.py

Purpose: Order payloads
"""

from pydantic import BaseModel, Field
from typing import Optional


class RequestNumberRequest(BaseModel):
    """
    Body of POST /orders/request
    """
    employeeId: str = Field(..., min_length=1, description="Owning employee id")
    employeeName: str = Field(..., min_length=1, description="Employee display name")
    
    model_config = {
        "json_schema_extra": {
            "example": {"employeeId": "665f1c2e9b1e8a3d4c2b1a00", "employeeName": "Priya"}
        }
    }


class DismissOrderRequest(BaseModel):
    """
    Optional body of POST /orders/dismiss/{orderId}
    """
    employeeId: Optional[str] = None
