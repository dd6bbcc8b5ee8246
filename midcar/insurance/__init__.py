"""MidCar Insurance — fleet policies, insurer file import and plate matching."""
from flask import Blueprint

insurance_bp = Blueprint('insurance', __name__)

from . import routes  # noqa: E402, F401
