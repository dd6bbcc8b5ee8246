"""MidCar Documents — sales contracts, deposits, invoices and proformas."""
from flask import Blueprint

documents_bp = Blueprint('documents', __name__)

from . import routes  # noqa: E402, F401
