"""Cross-entity aggregation: joins and reduces records from related tables.

The store has no joins, so each related table is fetched on its own
(concurrently, each scoped to the caller's branch) and joined here on a
shared natural key.

Numeric fields are coerced best-effort: a missing or non-numeric amount
counts as 0 instead of failing the whole dashboard. That permissiveness is a
product decision for dashboard figures only; ledger-grade computations such
as payroll must not reuse these helpers without sign-off from the domain
owners.
"""

import asyncio
import logging
import math
import re
from collections import defaultdict
from collections.abc import Iterable
from datetime import date, datetime, timedelta, timezone
from typing import Any

from branchdesk.application.interfaces import RecordStore
from branchdesk.application.services.access_scope_policy import (
    BRANCH_FIELD,
    AccessScopePolicy,
    branch_matches,
)
from branchdesk.domain.entities import (
    AggregationResult,
    CallerIdentity,
    PerEntityStat,
    Record,
    TableName,
    rule_for,
)
from branchdesk.domain.exceptions import BackendError, ScopeViolation

logger = logging.getLogger(__name__)

_LEADING_NUMBER = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")

DASHBOARD_REVENUE_WINDOW_DAYS = 30
DASHBOARD_RECENT_SALES = 10
DASHBOARD_TREND_DAYS = 7

_TRIP_DATE = rule_for(TableName.TRIPS).date_field
_MAINTENANCE_DATE = rule_for(TableName.VEHICLE_MAINTENANCE).date_field
_EXPENSE_DATE = rule_for(TableName.EXPENSES).date_field
_SALE_DATE = rule_for(TableName.SALES).date_field


# ── Coercion helpers ─────────────────────────────────────────────────


def to_number(value: Any) -> float:
    """Best-effort numeric coercion: anything unparseable becomes 0.

    Strings are read up to their first non-numeric character ("12.5 KES" is
    12.5). Single-element lists, as returned by lookup fields, are unwrapped.
    """
    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        match = _LEADING_NUMBER.match(value)
        if not match:
            return 0.0
        number = float(match.group(0))
    elif isinstance(value, (list, tuple)) and len(value) == 1:
        return to_number(value[0])
    else:
        return 0.0
    return number if math.isfinite(number) else 0.0


def parse_date(value: Any) -> datetime | None:
    """Parse a store date/datetime value into an aware datetime (UTC if naive)."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def sum_field(records: Iterable[Record], field: str) -> float:
    return sum(to_number(r.get(field)) for r in records)


def latest_date(records: Iterable[Record], field: str) -> str | None:
    """ISO timestamp of the most recent ``field`` value, or None."""
    dates = [d for d in (parse_date(r.get(field)) for r in records) if d is not None]
    return max(dates).isoformat() if dates else None


def sort_by_date_desc(records: Iterable[Record], field: str) -> list[Record]:
    """Newest first; records without a parseable date go last, in input order."""

    def key(record: Record) -> tuple[int, float]:
        parsed = parse_date(record.get(field))
        if parsed is None:
            return (1, 0.0)
        return (0, -parsed.timestamp())

    return sorted(records, key=key)


def _group_by(records: Iterable[Record], field: str) -> dict[str, list[Record]]:
    """Group records by a join key; list-valued keys join on each element."""
    groups: dict[str, list[Record]] = defaultdict(list)
    for record in records:
        value = record.get(field)
        keys = value if isinstance(value, (list, tuple)) else [value]
        for key in keys:
            if key not in (None, ""):
                groups[str(key)].append(record)
    return groups


# ── Engine ───────────────────────────────────────────────────────────


class AggregationEngine:
    """Computes dashboard statistics from several tables at request time."""

    def __init__(self, store: RecordStore, *, policy: AccessScopePolicy | None = None):
        self._store = store
        self._policy = policy or AccessScopePolicy()

    async def _fetch(
        self,
        identity: CallerIdentity,
        table: TableName,
        requested_filter: str | None = None,
    ) -> list[Record]:
        """Scoped fetch that degrades to an empty set when the store fails."""
        effective = self._policy.scope_filter(identity, table, requested_filter)
        try:
            records = await self._store.find(table, effective)
        except BackendError as exc:
            logger.warning("Aggregation fetch of %s failed, using empty set: %s", table.value, exc)
            return []
        return [r for r in records if self._policy.is_visible(identity, table, r)]

    # ── Fleet ────────────────────────────────────────────────────────

    async def fleet_statistics(self, identity: CallerIdentity) -> AggregationResult:
        """Fleet totals and a per-vehicle breakdown ranked by profit."""
        vehicles, trips, maintenance, expenses = await asyncio.gather(
            self._fetch(identity, TableName.VEHICLES),
            self._fetch(identity, TableName.TRIPS),
            self._fetch(identity, TableName.VEHICLE_MAINTENANCE),
            self._fetch(identity, TableName.EXPENSES),
        )

        total_revenue = sum_field(trips, "amount_charged")
        total_fuel_cost = sum_field(trips, "fuel_cost")
        total_profit = total_revenue - total_fuel_cost
        trip_count = len(trips)

        stats: dict[str, float | int] = {
            "total_vehicles": len(vehicles),
            "active_vehicles": sum(
                1 for v in vehicles if v.get("status") in (None, "", "active")
            ),
            "total_trips": trip_count,
            "total_revenue": total_revenue,
            "total_fuel_cost": total_fuel_cost,
            "total_profit": total_profit,
            "total_distance": sum_field(trips, "distance_km"),
            "maintenance_cost": sum_field(maintenance, "cost"),
            "total_expenses": sum_field(expenses, "amount"),
            "avg_profit_per_trip": total_profit / trip_count if trip_count else 0.0,
        }

        trips_by_plate = _group_by(trips, "vehicle_plate_number")
        maintenance_by_plate = _group_by(maintenance, "vehicle_plate_number")

        breakdown: list[PerEntityStat] = []
        for vehicle in vehicles:
            plate = vehicle.get("plate_number")
            key = str(plate) if plate not in (None, "") else None
            vehicle_trips = trips_by_plate.get(key, []) if key else []
            vehicle_maintenance = maintenance_by_plate.get(key, []) if key else []

            revenue = sum_field(vehicle_trips, "amount_charged")
            fuel_cost = sum_field(vehicle_trips, "fuel_cost")
            breakdown.append(
                PerEntityStat(
                    key=key or vehicle.id,
                    entity=vehicle,
                    stats={
                        "trip_count": len(vehicle_trips),
                        "total_revenue": revenue,
                        "total_fuel_cost": fuel_cost,
                        "total_profit": revenue - fuel_cost,
                        "total_distance": sum_field(vehicle_trips, "distance_km"),
                        "maintenance_cost": sum_field(vehicle_maintenance, "cost"),
                    },
                    attributes={
                        "last_trip_date": latest_date(vehicle_trips, _TRIP_DATE),
                        "last_maintenance_date": latest_date(
                            vehicle_maintenance, _MAINTENANCE_DATE
                        ),
                    },
                )
            )
        breakdown.sort(key=lambda s: -(s.stats["total_profit"] or 0.0))

        logger.info(
            "Fleet statistics for %s: %d vehicle(s), %d trip(s), profit=%.2f",
            identity.user_id,
            len(vehicles),
            trip_count,
            total_profit,
        )
        return AggregationResult(
            base_entities=vehicles,
            related_entities={
                "trips": sort_by_date_desc(trips, _TRIP_DATE),
                "maintenance": sort_by_date_desc(maintenance, _MAINTENANCE_DATE),
                "expenses": sort_by_date_desc(expenses, _EXPENSE_DATE),
            },
            computed_stats=stats,
            ranked_breakdown=breakdown,
        )

    # ── Branch dashboard ─────────────────────────────────────────────

    async def branch_dashboard(
        self,
        identity: CallerIdentity,
        branch_id: str,
        *,
        today: date | None = None,
    ) -> AggregationResult:
        """Headcount, stock alerts and sales figures for one branch.

        Non-exempt callers may only ask for their own branch.
        """
        if not identity.is_exempt and identity.branch_id != branch_id:
            raise ScopeViolation(TableName.BRANCHES.value, "cannot view another branch's dashboard")

        today = today or datetime.now(timezone.utc).date()
        requested = self._policy.branch_clause(branch_id) if identity.is_exempt else None

        branch, employees, stock, sales = await asyncio.gather(
            self._fetch_branch(branch_id),
            self._fetch(identity, TableName.EMPLOYEES, requested),
            self._fetch(identity, TableName.STOCK, requested),
            self._fetch(identity, TableName.SALES, requested),
        )
        employees = [r for r in employees if branch_matches(r.get(BRANCH_FIELD), branch_id)]
        stock = [r for r in stock if branch_matches(r.get(BRANCH_FIELD), branch_id)]
        sales = [r for r in sales if branch_matches(r.get(BRANCH_FIELD), branch_id)]

        window_start = today - timedelta(days=DASHBOARD_REVENUE_WINDOW_DAYS)
        sales_by_day: dict[date, list[Record]] = defaultdict(list)
        for sale in sales:
            sold = parse_date(sale.get(_SALE_DATE))
            if sold is not None and window_start <= sold.date() <= today:
                sales_by_day[sold.date()].append(sale)

        recent = [s for day_sales in sales_by_day.values() for s in day_sales]
        todays = sales_by_day.get(today, [])
        low_stock = [
            item
            for item in stock
            if to_number(item.get("quantity_available")) <= to_number(item.get("reorder_level"))
        ]

        trend: list[PerEntityStat] = []
        for offset in range(DASHBOARD_TREND_DAYS - 1, -1, -1):
            day = today - timedelta(days=offset)
            day_sales = sales_by_day.get(day, [])
            trend.append(
                PerEntityStat(
                    key=day.isoformat(),
                    stats={
                        "sales": sum_field(day_sales, "total_amount"),
                        "sales_count": len(day_sales),
                    },
                    attributes={"weekday": day.strftime("%a")},
                )
            )

        return AggregationResult(
            base_entities=[branch] if branch is not None else [],
            related_entities={
                "employees": employees,
                "stock": stock,
                "low_stock_items": low_stock,
                "sales": sort_by_date_desc(recent, _SALE_DATE)[:DASHBOARD_RECENT_SALES],
            },
            computed_stats={
                "total_employees": len(employees),
                "total_stock": len(stock),
                "low_stock_alerts": len(low_stock),
                "total_revenue": sum_field(recent, "total_amount"),
                "today_revenue": sum_field(todays, "total_amount"),
                "today_sales_count": len(todays),
            },
            ranked_breakdown=trend,
        )

    async def _fetch_branch(self, branch_id: str) -> Record | None:
        try:
            return await self._store.find_by_id(TableName.BRANCHES, branch_id)
        except BackendError as exc:
            logger.warning("Branch %s lookup failed: %s", branch_id, exc)
            return None

    # ── Sales with line items ────────────────────────────────────────

    async def sales_with_items(self, identity: CallerIdentity) -> AggregationResult:
        """Join visible sales with their sale_items on ``sale_id``."""
        sales, items = await asyncio.gather(
            self._fetch(identity, TableName.SALES),
            self._fetch(identity, TableName.SALE_ITEMS),
        )
        items_by_sale = _group_by(items, "sale_id")

        breakdown: list[PerEntityStat] = []
        joined: list[Record] = []
        for sale in sort_by_date_desc(sales, _SALE_DATE):
            sale_items = items_by_sale.get(sale.id, [])
            joined.extend(sale_items)
            breakdown.append(
                PerEntityStat(
                    key=sale.id,
                    entity=sale,
                    stats={
                        "item_count": len(sale_items),
                        "items_total": sum(_line_total(item) for item in sale_items),
                    },
                    attributes={"item_ids": [item.id for item in sale_items]},
                )
            )

        return AggregationResult(
            base_entities=[s.entity for s in breakdown if s.entity is not None],
            related_entities={"sale_items": joined},
            computed_stats={
                "sale_count": len(sales),
                "item_count": len(joined),
                "total_amount": sum_field(sales, "total_amount"),
            },
            ranked_breakdown=breakdown,
        )


def _line_total(item: Record) -> float:
    """A sale line's total; derived from quantity × unit price when not stored."""
    if item.get("total_price") not in (None, ""):
        return to_number(item.get("total_price"))
    return to_number(item.get("quantity")) * to_number(item.get("unit_price"))
