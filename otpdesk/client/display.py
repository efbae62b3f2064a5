"""
otpdesk/client/display.py

Purpose: Presentation helpers for the employee board and admin reports

- Status labels/colours for every order status
- Success-rate bands
- Phone number and countdown formatting
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, Optional

from otpdesk.models.order import OrderStatus
from otpdesk.utils.time_utils import format_countdown


@dataclass(frozen=True)
class StatusStyle:
    label: str
    color: str
    icon: str


STATUS_STYLES: Dict[OrderStatus, StatusStyle] = {
    OrderStatus.PENDING: StatusStyle("Waiting for SMS", "yellow", "⏳"),
    OrderStatus.COMPLETED: StatusStyle("SMS received", "green", "✅"),
    OrderStatus.CANCELLED: StatusStyle("Cancelled", "red", "❌"),
}

UNKNOWN_STYLE = StatusStyle("Unknown", "grey", "?")


def status_style(status: Optional[str]) -> StatusStyle:
    """
    Style for a status value; unrecognised values get a neutral style.
    """
    try:
        return STATUS_STYLES[OrderStatus(status)]
    except ValueError:
        return UNKNOWN_STYLE


def success_band(rate: float) -> str:
    if rate >= 80:
        return "good"
    if rate >= 50:
        return "fair"
    return "poor"


def format_phone_number(phone: Optional[str]) -> str:
    """
    "919876543210" -> "+91 9876543210"
    """
    if not phone:
        return ""
    digits = str(phone).lstrip("+")
    if len(digits) <= 2:
        return f"+{digits}"
    return f"+{digits[:2]} {digits[2:]}"


def format_order_line(order: Dict[str, Any], remaining: Optional[timedelta] = None) -> str:
    """
    One board row: icon, phone, status (or code) and countdown.
    """
    style = status_style(order.get("status"))
    parts = [style.icon, format_phone_number(order.get("phoneNumber"))]
    if order.get("smsCode"):
        parts.append(f"Code: {order['smsCode']}")
    else:
        parts.append(style.label)
    if remaining is not None:
        parts.append(format_countdown(remaining))
    return "  ".join(parts)
