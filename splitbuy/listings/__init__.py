"""The listings blueprint."""

from flask import Blueprint

bp = Blueprint("listings", __name__, url_prefix="/listings")

from . import routes  # noqa: E402

__all__ = ["routes"]
