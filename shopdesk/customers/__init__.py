from flask import Blueprint

customers = Blueprint('customers', __name__)

from shopdesk.customers import routes  # noqa: E402, F401
