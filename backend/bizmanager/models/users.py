from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow

ROLE_ADMIN = "admin"
ROLE_SALESMAN = "salesman"
ROLE_CUSTOMER = "customer"
ROLE_WORKER = "worker"

USER_ROLES = (ROLE_ADMIN, ROLE_SALESMAN, ROLE_CUSTOMER, ROLE_WORKER)


class User(db.Model):
    """
    Admin, salesman, customer or worker profile.

    Salesman-only fields:
    - max_discount_percent: ceiling for any single order line
    - total_*_cents: running aggregates, only ever increased by order creation

    Customers and workers may be attached to the salesman who manages them.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.Index("ix_users_role_approved", "role", "approved"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True, unique=True)
    phone = db.Column(db.String(32), nullable=True)
    role = db.Column(db.String(16), nullable=False, default=ROLE_CUSTOMER, index=True)
    approved = db.Column(db.Boolean, nullable=False, default=False)

    max_discount_percent = db.Column(db.Float, nullable=True)
    total_sales_cents = db.Column(db.Integer, nullable=False, default=0)
    total_discount_given_cents = db.Column(db.Integer, nullable=False, default=0)
    total_profit_generated_cents = db.Column(db.Integer, nullable=False, default=0)

    salesman_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<User id={self.id} name={self.name!r} role={self.role}>"

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "role": self.role,
            "approved": self.approved,
            "salesman_id": self.salesman_id,
            "created_at": to_utc_z(self.created_at),
        }
        if self.role == ROLE_SALESMAN:
            data.update({
                "max_discount_percent": self.max_discount_percent or 0,
                "total_sales_cents": self.total_sales_cents or 0,
                "total_discount_given_cents": self.total_discount_given_cents or 0,
                "total_profit_generated_cents": self.total_profit_generated_cents or 0,
            })
        return data
