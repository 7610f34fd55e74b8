"""
Financial and manpower aggregations computed over fetched documents.
"""
import calendar
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from constants import TransactionTypes, ApprovalStatus, PaymentStatus, REVENUE_TYPES, ExpenseCategories


def is_counted_expense(tx: Mapping) -> bool:
    return tx.get("type") == TransactionTypes.EXPENSE and tx.get("approval_status") == ApprovalStatus.APPROVED


def summarize_transactions(transactions: Iterable[Mapping]) -> Dict[str, float]:
    """Revenue, approved expenses, profit and outstanding revenue for a set of transactions."""
    total_revenue = 0.0
    total_expenses = 0.0
    pending_payments = 0.0
    overdue_payments = 0.0

    for tx in transactions:
        amount = tx.get("amount") or 0.0
        if tx.get("type") in REVENUE_TYPES:
            total_revenue += amount
            if tx.get("status") == PaymentStatus.PENDING:
                pending_payments += amount
            elif tx.get("status") == PaymentStatus.OVERDUE:
                overdue_payments += amount
        elif is_counted_expense(tx):
            total_expenses += amount

    return {
        "total_revenue": total_revenue,
        "total_expenses": total_expenses,
        "profit": total_revenue - total_expenses,
        "pending_payments": pending_payments,
        "overdue_payments": overdue_payments,
    }


def category_breakdown(expenses: Iterable[Mapping], known_categories: Iterable[str]) -> Dict[str, float]:
    """
    Approved expense totals per category. Every known category starts at zero;
    anything unrecognised (or blank) lands in ``other``.
    """
    totals: Dict[str, float] = {name: 0.0 for name in known_categories}
    totals.setdefault(ExpenseCategories.OTHER, 0.0)

    for tx in expenses:
        if not is_counted_expense(tx):
            continue
        category = tx.get("category") or ExpenseCategories.OTHER
        if category not in totals:
            category = ExpenseCategories.OTHER
        totals[category] += tx.get("amount") or 0.0
    return totals


def month_bounds(year: int, month: int) -> Tuple[datetime, datetime]:
    """Half-open range [first day of month, first day of next month)."""
    start = datetime(year, month, 1)
    end = datetime(year + 1, 1, 1) if month == 12 else datetime(year, month + 1, 1)
    return start, end


def build_attendance_report(
    records: Iterable[Mapping],
    allocations: Mapping,
    resources: Mapping,
    projects: Mapping,
    month: Optional[int] = None,
    year: Optional[int] = None,
) -> List[Dict]:
    """
    Group attendance by (resource, project) and price the hours.

    Cost uses the resource's hourly rate as it is *now*, applied to every hour
    in the period, so a rate change re-prices past attendance as well.
    """
    month_label = calendar.month_name[month] if month else "All"
    report_year = year or "All"
    rows: Dict[Tuple, Dict] = {}

    for record in records:
        allocation = allocations.get(record.get("project_resource_id"))
        if not allocation:
            continue
        resource_id = allocation.get("resource_id")
        project_id = allocation.get("project_id")
        key = (resource_id, project_id)

        if key not in rows:
            resource = resources.get(resource_id) or {}
            project = projects.get(project_id) or {}
            rows[key] = {
                "resource_id": resource_id,
                "resource_name": resource.get("name", "Unknown Resource"),
                "resource_role": resource.get("role"),
                "project_id": project_id,
                "project_name": project.get("name", "Unknown Project"),
                "month": month_label,
                "year": report_year,
                "total_hours": 0.0,
                "total_days": 0,
                "hourly_rate": resource.get("hourly_rate") or 0.0,
                "total_cost": 0.0,
            }

        rows[key]["total_hours"] += record.get("total_hours") or 0.0
        rows[key]["total_days"] += 1

    for row in rows.values():
        row["total_hours"] = round(row["total_hours"], 2)
        row["total_cost"] = round(row["total_hours"] * row["hourly_rate"], 2)

    return list(rows.values())


def summarize_resources(resources: Iterable[Mapping], active_allocations: Iterable[Mapping]) -> Dict:
    resources = list(resources)
    active_allocations = list(active_allocations)
    active_resources = [r for r in resources if r.get("is_active", True)]

    rates = [r.get("hourly_rate") or 0.0 for r in active_resources]
    return {
        "total_resources": len(resources),
        "active_resources": len(active_resources),
        "total_allocated_hours": sum(a.get("hours_allocated") or 0.0 for a in active_allocations),
        "average_hourly_rate": round(sum(rates) / len(rates), 2) if rates else 0.0,
        "projects_with_resources": len({a.get("project_id") for a in active_allocations}),
    }
