from flask import Blueprint

inventory = Blueprint('inventory', __name__)

from shopdesk.inventory import routes  # noqa: F401, E402
from shopdesk.inventory import models  # noqa: F401, E402  registers InventoryLog
