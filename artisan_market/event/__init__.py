from flask import Blueprint

bp = Blueprint("event", __name__, url_prefix="/api/events")

from . import routes  # noqa: E402,F401
