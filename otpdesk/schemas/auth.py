"""
otpdesk/schemas/auth.py

Purpose: Login payloads
"""

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1, description="Account username")
    password: str = Field(..., min_length=1, description="Account password")
    
    model_config = {
        "json_schema_extra": {
            "example": {"username": "priya", "password": "s3cret"}
        }
    }
