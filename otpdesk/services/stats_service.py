"""
otpdesk/services/stats_service.py

Purpose: Admin statistics

- Period filtering (today / month / all) against one canonical timezone
- Per-employee counts, success rates and last activity
- Dashboard aggregates and top performer rankings

The aggregation functions are pure; `load_*` helpers fetch the documents.
"""

import math
from datetime import date, datetime
from enum import Enum
from typing import Dict, Any, List, Iterable, Optional

from otpdesk.db.mongo import get_orders_collection, get_employees_collection
from otpdesk.models.order import OrderStatus
from otpdesk.models.employee import EmployeeStatus
from otpdesk.core.config import settings
from otpdesk.core.exceptions import ValidationError


class StatsPeriod(str, Enum):
    TODAY = "today"
    MONTH = "month"
    ALL = "all"


def parse_period(value: Optional[str]) -> StatsPeriod:
    if not value:
        return StatsPeriod.ALL
    try:
        return StatsPeriod(value)
    except ValueError:
        raise ValidationError(f"Unknown period '{value}'. Use today, month or all.")


def success_rate(completed: int, total: int) -> int:
    """
    Percentage of completed orders, rounded half up. 0 when there are no orders.
    """
    if total <= 0:
        return 0
    return int(math.floor(completed / total * 100 + 0.5))


def _order_date(order: Dict[str, Any]) -> Optional[date]:
    try:
        return date.fromisoformat(order.get("date", ""))
    except (TypeError, ValueError):
        return None


def filter_orders_by_period(orders: Iterable[Dict[str, Any]], period: StatsPeriod, today: date) -> List[Dict[str, Any]]:
    """
    Keeps the orders whose `date` falls in the period relative to `today`.
    """
    period = parse_period(period)
    if period == StatsPeriod.ALL:
        return list(orders)
    
    selected = []
    for order in orders:
        order_day = _order_date(order)
        if order_day is None:
            continue
        if period == StatsPeriod.TODAY and order_day == today:
            selected.append(order)
        elif period == StatsPeriod.MONTH and (order_day.year, order_day.month) == (today.year, today.month):
            selected.append(order)
    return selected


def count_by_status(orders: Iterable[Dict[str, Any]]) -> Dict[str, int]:
    counts = {"orders": 0, "completed": 0, "pending": 0, "cancelled": 0}
    for order in orders:
        counts["orders"] += 1
        status = order.get("status")
        if status == OrderStatus.COMPLETED.value:
            counts["completed"] += 1
        elif status == OrderStatus.PENDING.value:
            counts["pending"] += 1
        elif status == OrderStatus.CANCELLED.value:
            counts["cancelled"] += 1
    return counts


def _orders_by_employee(orders: Iterable[Dict[str, Any]]) -> Dict[str, List[Dict[str, Any]]]:
    grouped: Dict[str, List[Dict[str, Any]]] = {}
    for order in orders:
        grouped.setdefault(str(order.get("employeeId")), []).append(order)
    return grouped


def _activity_key(order: Dict[str, Any]) -> str:
    return f"{order.get('date', '')} {order.get('time', '')}"


def last_activity(orders: List[Dict[str, Any]]) -> str:
    """
    Date of the most recent order (by date and time), or "Never".
    """
    if not orders:
        return "Never"
    return max(orders, key=_activity_key).get("date", "Never")


def employee_stats(
    employees: List[Dict[str, Any]],
    orders: List[Dict[str, Any]],
    period: StatsPeriod,
    today: date
) -> List[Dict[str, Any]]:
    """
    Per-employee statistics for the period, busiest employees first.
    Last activity always looks at the full order history.
    """
    in_period = _orders_by_employee(filter_orders_by_period(orders, period, today))
    all_time = _orders_by_employee(orders)
    
    rows = []
    for employee in employees:
        employee_id = str(employee["_id"])
        counts = count_by_status(in_period.get(employee_id, []))
        rows.append({
            "id": employee_id,
            "name": employee.get("name"),
            "totalOrders": counts["orders"],
            "completed": counts["completed"],
            "pending": counts["pending"],
            "cancelled": counts["cancelled"],
            "successRate": success_rate(counts["completed"], counts["orders"]),
            "lastActivity": last_activity(all_time.get(employee_id, [])),
        })
    
    # sorted() is stable, ties keep employee order
    return sorted(rows, key=lambda row: row["totalOrders"], reverse=True)


def rank_by_completed(
    employees: List[Dict[str, Any]],
    orders: List[Dict[str, Any]],
    limit: int
) -> List[Dict[str, Any]]:
    """
    Employees ranked by completed orders, top `limit`.
    """
    grouped = _orders_by_employee(orders)
    performance = []
    for employee in employees:
        counts = count_by_status(grouped.get(str(employee["_id"]), []))
        performance.append({
            "name": employee.get("name"),
            "totalOrders": counts["orders"],
            "completedOrders": counts["completed"],
            "successRate": success_rate(counts["completed"], counts["orders"]),
        })
    return sorted(performance, key=lambda row: row["completedOrders"], reverse=True)[:limit]


def top_performers(
    employees: List[Dict[str, Any]],
    orders: List[Dict[str, Any]],
    today: date,
    limit: Optional[int] = None
) -> List[Dict[str, Any]]:
    """
    Today's most active employees (at least one order), ranked by order count.
    """
    limit = limit or settings.TOP_PERFORMERS_LIMIT
    grouped = _orders_by_employee(filter_orders_by_period(orders, StatsPeriod.TODAY, today))
    
    performers = []
    for employee in employees:
        counts = count_by_status(grouped.get(str(employee["_id"]), []))
        if counts["orders"] == 0:
            continue
        performers.append({
            "name": employee.get("name"),
            "ordersCount": counts["orders"],
            "completed": counts["completed"],
            "successRate": success_rate(counts["completed"], counts["orders"]),
        })
    return sorted(performers, key=lambda row: row["ordersCount"], reverse=True)[:limit]


def _created_at(order: Dict[str, Any]) -> datetime:
    return order.get("createdAt") or datetime.min


def dashboard_stats(
    employees: List[Dict[str, Any]],
    orders: List[Dict[str, Any]],
    today: date,
    limit: Optional[int] = None
) -> Dict[str, Any]:
    """
    Aggregates for the admin dashboard.
    """
    limit = limit or settings.TOP_PERFORMERS_LIMIT
    today_counts = count_by_status(filter_orders_by_period(orders, StatsPeriod.TODAY, today))
    month_counts = count_by_status(filter_orders_by_period(orders, StatsPeriod.MONTH, today))
    all_counts = count_by_status(orders)
    
    total_employees = len(employees)
    active_employees = sum(1 for e in employees if e.get("status") == EmployeeStatus.ACTIVE.value)
    
    return {
        "totalEmployees": total_employees,
        "activeEmployees": active_employees,
        "totalOrders": all_counts["orders"],
        "completedOrders": all_counts["completed"],
        "topPerformers": rank_by_completed(employees, orders, limit),
        "recentOrders": sorted(orders, key=_created_at, reverse=True)[:limit],
        "today": today_counts,
        "monthly": month_counts,
        "allTime": {
            "orders": all_counts["orders"],
            "completed": all_counts["completed"],
            "employees": total_employees,
            "activeEmployees": active_employees,
            "successRate": success_rate(all_counts["completed"], all_counts["orders"]),
        },
    }


async def load_employees_and_orders():
    """
    Fetches every employee and order document.
    """
    employees = await get_employees_collection().find().to_list(length=None)
    orders = await get_orders_collection().find().to_list(length=None)
    return employees, orders
