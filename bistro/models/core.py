from sqlalchemy import (
    String, ForeignKey, Boolean, Enum, Text, DateTime, Integer, JSON, Numeric
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from enum import Enum as PyEnum
from datetime import datetime
from bistro.db import Base
from bistro.models.common import IdMixin, TSMMixin, money_column

# ── Enums ───────────────────────────────────────────────────────────────────
class UserRole(PyEnum):
    ADMIN = "Admin"
    WAITER = "Waiter"
    CASHIER = "Cashier"
    KITCHEN = "Kitchen"

class TableStatus(PyEnum):
    AVAILABLE = "Available"
    OCCUPIED = "Occupied"
    WAITING_FOR_BILL = "Waiting for Bill"

class MenuCategory(PyEnum):
    STARTERS = "Starters"
    MAINS = "Mains"
    DESSERTS = "Desserts"
    DRINKS = "Drinks"

class OrderStatus(PyEnum):
    PENDING = "Pending"
    COOKING = "Cooking"
    READY = "Ready"
    SERVED = "Served"

# kitchen workflow; status may only move forward along this list
ORDER_FLOW = [OrderStatus.PENDING, OrderStatus.COOKING, OrderStatus.READY, OrderStatus.SERVED]

class PayMethod(PyEnum):
    CASH = "Cash"
    ESEWA = "E-sewa"
    KHALTI = "Khalti"
    BANK_TRANSFER = "Bank Transfer"
    CREDIT = "Credit"

class CreditKind(PyEnum):
    CREDIT = "Credit"    # customer took credit on a bill
    PAYMENT = "Payment"  # customer paid back

class ExpenseCategory(PyEnum):
    FOOD_SUPPLIES = "Food Supplies"
    BEVERAGES = "Beverages"
    UTILITIES = "Utilities"
    RENT = "Rent"
    SALARIES = "Salaries"
    MAINTENANCE = "Maintenance"
    MARKETING = "Marketing"
    OTHER = "Other"

class PrintStation(PyEnum):
    KITCHEN = "KITCHEN"
    CASHIER = "CASHIER"

# ── Identity ────────────────────────────────────────────────────────────────
class User(Base, IdMixin, TSMMixin):
    __tablename__ = "user"
    name: Mapped[str] = mapped_column(String(160))
    email: Mapped[str] = mapped_column(String(160), unique=True)
    pass_hash: Mapped[str] = mapped_column(String(200))
    role: Mapped[UserRole] = mapped_column(Enum(UserRole), default=UserRole.WAITER)
    # notification preferences for the frontend
    sound_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    volume: Mapped[int] = mapped_column(Integer, default=70)

# ── Printers ────────────────────────────────────────────────────────────────
class Printer(Base, IdMixin, TSMMixin):
    __tablename__ = "printer"
    name: Mapped[str] = mapped_column(String(120))
    station: Mapped[PrintStation] = mapped_column(Enum(PrintStation))
    connection_url: Mapped[str | None] = mapped_column(String(300))  # tcp://ip:9100, http agent, console://
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)

# ── Dining ──────────────────────────────────────────────────────────────────
class DiningTable(Base, IdMixin, TSMMixin):
    __tablename__ = "dining_table"
    table_number: Mapped[str] = mapped_column(String(30), unique=True)
    status: Mapped[TableStatus] = mapped_column(Enum(TableStatus), default=TableStatus.AVAILABLE)

# ── Menu ────────────────────────────────────────────────────────────────────
class MenuItem(Base, IdMixin, TSMMixin):
    __tablename__ = "menu_item"
    name: Mapped[str] = mapped_column(String(160))
    price: Mapped[float] = money_column()  # base price, used when no variation is picked
    category: Mapped[MenuCategory] = mapped_column(Enum(MenuCategory))
    description: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    variations: Mapped[list["MenuItemVariation"]] = relationship(
        order_by="MenuItemVariation.position", cascade="all, delete-orphan", lazy="selectin")
    add_ons: Mapped[list["MenuItemAddOn"]] = relationship(
        order_by="MenuItemAddOn.position", cascade="all, delete-orphan", lazy="selectin")

class MenuItemVariation(Base, IdMixin):
    __tablename__ = "menu_item_variation"
    item_id: Mapped[str] = mapped_column(String(36), ForeignKey("menu_item.id"))
    name: Mapped[str] = mapped_column(String(80))  # e.g. Small / Large
    price: Mapped[float] = money_column()
    position: Mapped[int] = mapped_column(default=0)

class MenuItemAddOn(Base, IdMixin):
    __tablename__ = "menu_item_add_on"
    item_id: Mapped[str] = mapped_column(String(36), ForeignKey("menu_item.id"))
    name: Mapped[str] = mapped_column(String(80))  # e.g. Extra Cheese
    price: Mapped[float] = money_column(default=0)
    position: Mapped[int] = mapped_column(default=0)

# ── Customers ───────────────────────────────────────────────────────────────
class Customer(Base, IdMixin, TSMMixin):
    __tablename__ = "customer"
    name: Mapped[str] = mapped_column(String(160))
    phone: Mapped[str | None] = mapped_column(String(20), unique=True)
    email: Mapped[str | None] = mapped_column(String(160), unique=True)
    address: Mapped[str | None] = mapped_column(Text)
    credit_balance: Mapped[float] = money_column(default=0)
    total_credit_given: Mapped[float] = money_column(default=0)
    total_credit_paid: Mapped[float] = money_column(default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    credit_transactions: Mapped[list["CreditTransaction"]] = relationship(
        order_by="CreditTransaction.created_at", lazy="selectin")

class CreditTransaction(Base, IdMixin, TSMMixin):
    __tablename__ = "credit_transaction"
    customer_id: Mapped[str] = mapped_column(String(36), ForeignKey("customer.id"))
    kind: Mapped[CreditKind] = mapped_column(Enum(CreditKind))
    amount: Mapped[float] = money_column()
    bill_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("bill.id"))
    description: Mapped[str | None] = mapped_column(Text)

# ── Orders / Bills ──────────────────────────────────────────────────────────
class Order(Base, IdMixin, TSMMixin):
    __tablename__ = "order"
    table_id: Mapped[str] = mapped_column(String(36), ForeignKey("dining_table.id"))
    order_number: Mapped[str] = mapped_column(String(30), unique=True)
    status: Mapped[OrderStatus] = mapped_column(Enum(OrderStatus), default=OrderStatus.PENDING)
    waiter_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("user.id"))
    session_id: Mapped[str | None] = mapped_column(String(36))
    total_amount: Mapped[float] = money_column(default=0)
    is_billed: Mapped[bool] = mapped_column(Boolean, default=False)
    billed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    bill_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("bill.id"))

    items: Mapped[list["OrderItem"]] = relationship(
        order_by="OrderItem.position", cascade="all, delete-orphan", lazy="selectin")
    table: Mapped[DiningTable] = relationship(lazy="joined")
    waiter: Mapped[User | None] = relationship(lazy="joined")

class OrderItem(Base, IdMixin):
    __tablename__ = "order_item"
    order_id: Mapped[str] = mapped_column(String(36), ForeignKey("order.id"))
    item_id: Mapped[str] = mapped_column(String(36), ForeignKey("menu_item.id"))
    position: Mapped[int] = mapped_column(default=0)
    quantity: Mapped[int] = mapped_column(Integer)
    notes: Mapped[str | None] = mapped_column(Text)            # "No onion", "Extra spicy"
    selected_variation: Mapped[str | None] = mapped_column(String(80))
    add_ons: Mapped[list[str]] = mapped_column(JSON, default=list)
    # derived by the pricing calculator when the line is taken
    item_price: Mapped[float] = money_column()
    add_on_price: Mapped[float] = money_column(default=0)
    total_price: Mapped[float] = money_column()

    menu_item: Mapped[MenuItem] = relationship(lazy="joined")

class Bill(Base, IdMixin, TSMMixin):
    __tablename__ = "bill"
    table_id: Mapped[str] = mapped_column(String(36), ForeignKey("dining_table.id"))
    bill_number: Mapped[str] = mapped_column(String(30), unique=True)
    subtotal: Mapped[float] = money_column()
    tax: Mapped[float] = money_column()
    discount: Mapped[float] = money_column(default=0)
    tax_rate: Mapped[float] = mapped_column(Numeric(5, 4, asdecimal=False), default=0.10)  # rate the tax was taken at
    total: Mapped[float] = money_column()
    customer_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("customer.id"))
    credit_amount: Mapped[float] = money_column(default=0)

    orders: Mapped[list["Order"]] = relationship(
        foreign_keys="Order.bill_id", order_by="Order.created_at", lazy="selectin")
    payments: Mapped[list["BillPayment"]] = relationship(
        order_by="BillPayment.position", cascade="all, delete-orphan", lazy="selectin")
    table: Mapped[DiningTable] = relationship(lazy="joined")
    customer: Mapped[Customer | None] = relationship(lazy="joined")

class BillPayment(Base, IdMixin):
    __tablename__ = "bill_payment"
    bill_id: Mapped[str] = mapped_column(String(36), ForeignKey("bill.id"))
    method: Mapped[PayMethod] = mapped_column(Enum(PayMethod))
    amount: Mapped[float] = money_column()
    position: Mapped[int] = mapped_column(default=0)

# ── Expenses ────────────────────────────────────────────────────────────────
class Expense(Base, IdMixin, TSMMixin):
    __tablename__ = "expense"
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    category: Mapped[ExpenseCategory] = mapped_column(Enum(ExpenseCategory))
    amount: Mapped[float] = money_column()
    payment_method: Mapped[PayMethod] = mapped_column(Enum(PayMethod))
    notes: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[str] = mapped_column(String(36), ForeignKey("user.id"))

    creator: Mapped[User] = relationship(lazy="joined")

# ── Audit ───────────────────────────────────────────────────────────────────
class AuditLog(Base, IdMixin, TSMMixin):
    __tablename__ = "audit_log"
    actor_user_id: Mapped[str] = mapped_column(String(36))
    entity: Mapped[str] = mapped_column(String(60))
    entity_id: Mapped[str] = mapped_column(String(36))
    action: Mapped[str] = mapped_column(String(60))
    reason: Mapped[str | None] = mapped_column(Text)  # e.g. reprint reason
    before: Mapped[str | None] = mapped_column(Text)
    after: Mapped[str | None] = mapped_column(Text)
