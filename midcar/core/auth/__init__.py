"""MidCar Core Authentication Module.

Users, dealership roles (admin, vendedor, mecanico, recepcionista) and the
"Mi Vista" / "Visión completa" data scope.
"""
from flask import Blueprint

auth_bp = Blueprint('auth', __name__)

from . import routes  # noqa: E402, F401
