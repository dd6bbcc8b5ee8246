"""MidCar Web Content — editable sections, config, testimonials, benefits and FAQs of the public site."""
from flask import Blueprint

web_content_bp = Blueprint('web_content', __name__)

from . import routes  # noqa: E402, F401
