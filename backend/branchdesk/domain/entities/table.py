"""Closed table allow-list and the per-table rules resolved at import time."""

from dataclasses import dataclass
from enum import Enum

from branchdesk.domain.exceptions import InvalidTable


class TableName(str, Enum):
    """Every table the record store exposes. Values are the store's own names."""

    BRANCHES = "branches"
    EMPLOYEES = "employees"
    STOCK = "stock"
    STOCK_MOVEMENTS = "stock_movements"
    SALES = "sales"
    SALE_ITEMS = "sale_items"
    EXPENSES = "expenses"
    VEHICLES = "vehicles"
    TRIPS = "trips"
    VEHICLE_MAINTENANCE = "vehicle_maintenance"
    ORDERS = "orders"
    ORDER_ITEMS = "order_items"
    PAYROLL = "payroll"
    AUDIT_LOGS = "audit_logs"
    SETTINGS = "erp_settings"
    DOCUMENTS = "documents"


@dataclass(frozen=True)
class TableRule:
    """Scoping and validation rule attached to one table."""

    branch_scoped: bool = False
    required_fields: frozenset[str] = frozenset()
    date_field: str | None = None


TABLE_RULES: dict[TableName, TableRule] = {
    TableName.BRANCHES: TableRule(required_fields=frozenset({"branch_name"})),
    TableName.EMPLOYEES: TableRule(
        branch_scoped=True,
        required_fields=frozenset({"full_name", "email", "role"}),
        date_field="hire_date",
    ),
    TableName.STOCK: TableRule(
        branch_scoped=True,
        required_fields=frozenset({"product_name", "quantity_available", "unit_price"}),
    ),
    TableName.STOCK_MOVEMENTS: TableRule(date_field="movement_date"),
    TableName.SALES: TableRule(branch_scoped=True, date_field="sale_date"),
    TableName.SALE_ITEMS: TableRule(
        required_fields=frozenset({"product_name", "quantity", "unit_price"}),
    ),
    TableName.EXPENSES: TableRule(
        branch_scoped=True,
        required_fields=frozenset({"amount"}),
        date_field="expense_date",
    ),
    TableName.VEHICLES: TableRule(required_fields=frozenset({"plate_number"})),
    TableName.TRIPS: TableRule(
        required_fields=frozenset({"vehicle_plate_number"}),
        date_field="trip_date",
    ),
    TableName.VEHICLE_MAINTENANCE: TableRule(
        required_fields=frozenset({"vehicle_plate_number"}),
        date_field="maintenance_date",
    ),
    TableName.ORDERS: TableRule(date_field="order_date"),
    TableName.ORDER_ITEMS: TableRule(),
    TableName.PAYROLL: TableRule(),
    TableName.AUDIT_LOGS: TableRule(
        required_fields=frozenset({"action", "resource"}),
        date_field="timestamp",
    ),
    TableName.SETTINGS: TableRule(),
    TableName.DOCUMENTS: TableRule(),
}

_missing = set(TableName) - set(TABLE_RULES)
if _missing:
    raise RuntimeError(f"Tables without a rule: {sorted(t.value for t in _missing)}")


def resolve_table(name: str | TableName) -> TableName:
    """Map a store table name onto the closed enum, or raise InvalidTable."""
    if isinstance(name, TableName):
        return name
    try:
        return TableName(name)
    except ValueError:
        raise InvalidTable(str(name)) from None


def rule_for(table: TableName) -> TableRule:
    return TABLE_RULES[table]
