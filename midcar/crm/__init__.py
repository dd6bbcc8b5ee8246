"""MidCar CRM — leads, contacts, clients, interactions and sales.

Leads track a sale opportunity through the pipeline; contacts are the
backoffice inbox (web forms, phone, portals) before a lead exists.
"""
from flask import Blueprint

crm_bp = Blueprint('crm', __name__)

from . import routes  # noqa: E402, F401
