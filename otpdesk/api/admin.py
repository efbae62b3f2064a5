"""
otpdesk/api/admin.py

Purpose: Admin statistics endpoints
"""

from typing import Optional

from fastapi import APIRouter, Query

from otpdesk.schemas.response import serialize_document
from otpdesk.services import stats_service
from otpdesk.utils.time_utils import today_local

router = APIRouter(prefix="/admin")


@router.get("/stats")
async def dashboard_stats():
    employees, orders = await stats_service.load_employees_and_orders()
    stats = stats_service.dashboard_stats(employees, orders, today_local())
    stats["recentOrders"] = [serialize_document(o) for o in stats["recentOrders"]]
    return {"success": True, "stats": stats}


@router.get("/employee-stats")
async def employee_stats(period: Optional[str] = Query(None, description="today | month | all")):
    selected = stats_service.parse_period(period)
    employees, orders = await stats_service.load_employees_and_orders()
    rows = stats_service.employee_stats(employees, orders, selected, today_local())
    return {"success": True, "period": selected.value, "employeeStats": rows}


@router.get("/top-performers")
async def top_performers():
    employees, orders = await stats_service.load_employees_and_orders()
    return {
        "success": True,
        "performers": stats_service.top_performers(employees, orders, today_local()),
    }
