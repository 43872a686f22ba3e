"""The catalog blueprint."""

from flask import Blueprint

bp = Blueprint("catalog", __name__, url_prefix="/products")

from . import routes  # noqa: E402

__all__ = ["routes"]
