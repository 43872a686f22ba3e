"""The reviews blueprint: vendor reviews of supplier products."""

from flask import Blueprint

bp = Blueprint("reviews", __name__, url_prefix="/reviews")

from . import routes  # noqa: E402

__all__ = ["routes"]
