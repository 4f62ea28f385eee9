from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow

ORDER_STATUS_PENDING = "Pending"
ORDER_STATUS_PARTIALLY_DELIVERED = "Partially Delivered"
ORDER_STATUS_DELIVERED = "Delivered"

ORDER_STATUSES = (
    ORDER_STATUS_PENDING,
    ORDER_STATUS_PARTIALLY_DELIVERED,
    ORDER_STATUS_DELIVERED,
)


class Order(db.Model):
    """
    Customer order.

    Pricing and the item list are fixed when the order is created.
    status/delivered_* only change through delivery reconciliation.

    customer_name / salesman_name / worker_name are snapshots taken at
    creation time and are never re-synced with the user records.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_salesman_created", "salesman_id", "created_at"),
        db.Index("ix_orders_customer_created", "customer_id", "created_at"),
        db.Index("ix_orders_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    customer_name = db.Column(db.String(255), nullable=True)
    salesman_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    salesman_name = db.Column(db.String(255), nullable=True)
    worker_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    worker_name = db.Column(db.String(255), nullable=True)

    status = db.Column(db.String(32), nullable=False, default=ORDER_STATUS_PENDING, index=True)

    # All amounts in cents
    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cost_cents = db.Column(db.Integer, nullable=False, default=0)
    total_profit_cents = db.Column(db.Integer, nullable=False, default=0)
    delivered_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    delivered_profit_cents = db.Column(db.Integer, nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    items = db.relationship(
        "OrderItem",
        back_populates="order",
        order_by="OrderItem.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Order id={self.id} status={self.status!r} total={self.total_amount_cents}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "salesman_id": self.salesman_id,
            "salesman_name": self.salesman_name,
            "worker_id": self.worker_id,
            "worker_name": self.worker_name,
            "status": self.status,
            "items": [item.to_dict() for item in self.items],
            "total_amount_cents": self.total_amount_cents,
            "total_cost_cents": self.total_cost_cents,
            "total_profit_cents": self.total_profit_cents,
            "delivered_amount_cents": self.delivered_amount_cents,
            "delivered_profit_cents": self.delivered_profit_cents,
            "notes": self.notes,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class OrderItem(db.Model):
    """Individual line on an order."""
    __tablename__ = "order_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_order_items_quantity_pos"),
        db.CheckConstraint(
            "delivered_quantity >= 0 AND delivered_quantity <= quantity",
            name="ck_order_items_delivered_range",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)
    size = db.Column(db.String(64), nullable=False)
    color = db.Column(db.String(64), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    cost_price_cents = db.Column(db.Integer, nullable=False, default=0)
    selling_price_cents = db.Column(db.Integer, nullable=False)
    final_price_cents = db.Column(db.Integer, nullable=False)
    discount_given_cents = db.Column(db.Integer, nullable=False, default=0)

    delivered_quantity = db.Column(db.Integer, nullable=False, default=0)

    order = db.relationship("Order", back_populates="items")

    def matches(self, product_id: int, size: str, color: str) -> bool:
        return self.product_id == product_id and self.size == size and self.color == color

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "size": self.size,
            "color": self.color,
            "quantity": self.quantity,
            "cost_price_cents": self.cost_price_cents,
            "selling_price_cents": self.selling_price_cents,
            "final_price_cents": self.final_price_cents,
            "discount_given_cents": self.discount_given_cents,
            "delivered_quantity": self.delivered_quantity or 0,
        }
