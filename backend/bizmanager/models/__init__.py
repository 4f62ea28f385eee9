from .attendance import Attendance
from .catalog import Category, Product, ProductVariant
from .orders import (
    Order,
    OrderItem,
    ORDER_STATUSES,
    ORDER_STATUS_PENDING,
    ORDER_STATUS_PARTIALLY_DELIVERED,
    ORDER_STATUS_DELIVERED,
)
from .users import User, USER_ROLES, ROLE_ADMIN, ROLE_SALESMAN, ROLE_CUSTOMER, ROLE_WORKER

__all__ = [
    'Attendance',
    'Category', 'Product', 'ProductVariant',
    'Order', 'OrderItem',
    'ORDER_STATUSES', 'ORDER_STATUS_PENDING', 'ORDER_STATUS_PARTIALLY_DELIVERED', 'ORDER_STATUS_DELIVERED',
    'User', 'USER_ROLES', 'ROLE_ADMIN', 'ROLE_SALESMAN', 'ROLE_CUSTOMER', 'ROLE_WORKER',
]
