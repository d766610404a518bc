# Importing the module registers tables with Base for create_all()
from .core import (  # noqa: F401
    # Enums
    UserRole, TableStatus, MenuCategory, OrderStatus, ORDER_FLOW,
    PayMethod, CreditKind, ExpenseCategory, PrintStation,

    # Identity & printers
    User, Printer,

    # Dining & menu
    DiningTable, MenuItem, MenuItemVariation, MenuItemAddOn,

    # Customers
    Customer, CreditTransaction,

    # Orders / bills
    Order, OrderItem, Bill, BillPayment,

    # Expenses & audit
    Expense, AuditLog,
)

__all__ = [
    "UserRole", "TableStatus", "MenuCategory", "OrderStatus", "ORDER_FLOW",
    "PayMethod", "CreditKind", "ExpenseCategory", "PrintStation",
    "User", "Printer",
    "DiningTable", "MenuItem", "MenuItemVariation", "MenuItemAddOn",
    "Customer", "CreditTransaction",
    "Order", "OrderItem", "Bill", "BillPayment",
    "Expense", "AuditLog",
]
