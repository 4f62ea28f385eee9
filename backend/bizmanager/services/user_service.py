# Overview: Service-layer operations for users; profiles, approval, roles and salesman aggregates.

"""
Users Service

SOFT-FAIL POLICY: listing operations that hit a permission-denied backend
error return an empty list (logged) so read-only screens stay usable. Every
other backend failure is raised as UserError with a generic message.

APPROVED DEFAULT: a user created without an explicit `approved` flag gets
current_app.config["USER_APPROVED_DEFAULT"]; no read path invents a value.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from ..extensions import db
from ..models import User, USER_ROLES, ROLE_ADMIN, ROLE_CUSTOMER, ROLE_SALESMAN, ROLE_WORKER
from ..validation import ModelValidationPolicy, ValidationError, validate_payload

USER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "email", "phone", "role", "approved", "max_discount_percent", "salesman_id"},
    required_on_create={"name"},
)

# Postgres insufficient_privilege
_PERMISSION_DENIED_SQLSTATES = {"42501"}


class UserError(Exception):
    """Raised for user operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def _is_permission_denied(exc: SQLAlchemyError) -> bool:
    if not isinstance(exc, DBAPIError):
        return False
    orig = exc.orig
    if getattr(orig, "pgcode", None) in _PERMISSION_DENIED_SQLSTATES:
        return True
    text = str(orig).lower()
    return "permission denied" in text or "access denied" in text


def _check_role(role: str) -> None:
    if role not in USER_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(USER_ROLES)}")


def _commit(message: str) -> None:
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise UserError(message) from exc


def create_user(payload: dict) -> User:
    patch = validate_payload(model=User, payload=payload, policy=USER_POLICY, partial=False)
    role = patch.setdefault("role", ROLE_CUSTOMER)
    _check_role(role)

    if patch.get("approved") is None:
        patch["approved"] = bool(current_app.config.get("USER_APPROVED_DEFAULT", False))
    if role == ROLE_ADMIN:
        patch["approved"] = True
    if role == ROLE_SALESMAN and patch.get("max_discount_percent") is None:
        patch["max_discount_percent"] = current_app.config.get("DEFAULT_MAX_DISCOUNT_PERCENT", 10)
    ceiling = patch.get("max_discount_percent")
    if ceiling is not None and (ceiling < 0 or ceiling > 100):
        raise ValidationError("max_discount_percent must be between 0 and 100")

    user = User(**patch)
    db.session.add(user)
    _commit("Failed to create user")
    return user


def get_user(user_id: int) -> User | None:
    try:
        return db.session.get(User, user_id)
    except SQLAlchemyError as exc:
        raise UserError("Failed to fetch user") from exc


def _require_user(user_id: int) -> User:
    user = get_user(user_id)
    if user is None:
        raise UserError("User not found", details={"user_id": user_id})
    return user


def _list(query, what: str) -> list[User]:
    try:
        return query.order_by(User.name.asc()).all()
    except SQLAlchemyError as exc:
        db.session.rollback()
        if _is_permission_denied(exc):
            current_app.logger.warning("Permission denied while listing %s; returning empty list", what)
            return []
        raise UserError(f"Failed to fetch {what}") from exc


def list_users(role: str | None = None, approved: bool | None = None) -> list[User]:
    query = db.session.query(User)
    if role is not None:
        _check_role(role)
        query = query.filter(User.role == role)
    if approved is not None:
        query = query.filter(User.approved.is_(approved))
    return _list(query, "users")


def list_customers(salesman_id: int | None = None) -> list[User]:
    """Approved customers, optionally only those managed by one salesman."""
    query = db.session.query(User).filter(User.role == ROLE_CUSTOMER, User.approved.is_(True))
    if salesman_id is not None:
        query = query.filter(User.salesman_id == salesman_id)
    return _list(query, "customers")


def list_workers(salesman_id: int) -> list[User]:
    query = db.session.query(User).filter(User.role == ROLE_WORKER, User.salesman_id == salesman_id)
    return _list(query, "workers")


def approve_user(user_id: int) -> User:
    user = _require_user(user_id)
    user.approved = True
    _commit("Failed to approve user")
    current_app.logger.info("User %s approved", user_id)
    return user


def revoke_user_approval(user_id: int) -> User:
    user = _require_user(user_id)
    user.approved = False
    _commit("Failed to revoke user approval")
    current_app.logger.info("User %s approval revoked", user_id)
    return user


def change_user_role(user_id: int, new_role: str) -> User:
    """
    Switch a user's role.

    - becoming salesman: gets the default discount ceiling if none is set
    - becoming admin: approved automatically
    """
    _check_role(new_role)
    user = _require_user(user_id)
    user.role = new_role

    if new_role == ROLE_SALESMAN and user.max_discount_percent is None:
        user.max_discount_percent = current_app.config.get("DEFAULT_MAX_DISCOUNT_PERCENT", 10)
    if new_role == ROLE_ADMIN:
        user.approved = True

    _commit("Failed to change user role")
    current_app.logger.info("User %s role changed to %s", user_id, new_role)
    return user


def set_max_discount(user_id: int, percent: float) -> User:
    if percent < 0 or percent > 100:
        raise ValidationError("max_discount_percent must be between 0 and 100")
    user = _require_user(user_id)
    if user.role != ROLE_SALESMAN:
        raise UserError("Discount ceiling only applies to salesmen", details={"user_id": user_id})
    user.max_discount_percent = percent
    _commit("Failed to update user")
    return user


def update_salesman_stats(
    salesman_id: int,
    sales_cents: int,
    discount_cents: int,
    profit_cents: int,
    *,
    commit: bool = True,
) -> None:
    """
    Add one order's figures to the salesman's running aggregates.

    Increments are applied in SQL so concurrent orders do not lose updates.
    Aggregates are never decreased.
    """
    salesman = db.session.get(User, salesman_id)
    if salesman is None:
        raise UserError("Salesman not found", details={"salesman_id": salesman_id})

    salesman.total_sales_cents = User.total_sales_cents + sales_cents
    salesman.total_discount_given_cents = User.total_discount_given_cents + discount_cents
    salesman.total_profit_generated_cents = User.total_profit_generated_cents + profit_cents

    if commit:
        _commit("Failed to update salesman stats")
