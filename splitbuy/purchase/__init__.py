"""The purchase request blueprint."""

from flask import Blueprint

bp = Blueprint("purchase", __name__)

from . import routes  # noqa: E402

__all__ = ["routes"]
