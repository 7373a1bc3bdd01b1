"""
shopdesk/catalog/__init__.py
----------------------------
Products, variants and sizes.
URL prefix: /catalog
"""
from flask import Blueprint

catalog = Blueprint('catalog', __name__)

from shopdesk.catalog import routes  # noqa: E402, F401
from shopdesk.catalog import models  # noqa: E402, F401  registers Product/Variant/VariantSize
