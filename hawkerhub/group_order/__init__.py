"""The group order blueprint."""

from flask import Blueprint

bp = Blueprint("group_order", __name__, url_prefix="/group-orders")

from . import routes  # noqa: E402

__all__ = ["routes"]
