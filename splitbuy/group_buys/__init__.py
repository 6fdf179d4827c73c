"""The group buys blueprint."""

from flask import Blueprint

bp = Blueprint("group_buys", __name__, url_prefix="/group-buys")

from . import routes  # noqa: E402

__all__ = ["routes"]
