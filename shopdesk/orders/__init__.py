"""
shopdesk/orders/__init__.py
---------------------------
Sales orders blueprint.
URL prefix: /orders
"""
from flask import Blueprint

orders = Blueprint('orders', __name__)

from shopdesk.orders import routes  # noqa: E402, F401
