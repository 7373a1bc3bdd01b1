"""
shopdesk/purchasing/__init__.py
-------------------------------
Suppliers & purchase orders blueprint.
URL prefix: /purchasing
"""
from flask import Blueprint

purchasing = Blueprint('purchasing', __name__)

from shopdesk.purchasing import routes  # noqa: E402, F401  (registers routes)
