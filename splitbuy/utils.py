"""Utility functions for the application."""

from __future__ import annotations

import datetime
import re
import smtplib
from typing import Any

from flask import current_app, render_template, request
from flask_mail import Message

from .errors import ValidationError
from .extensions import mail

SMTP_AUTH_ERROR_CODE = 534
_TAG_RE = re.compile(r"<[^>]*>?")


class EmailError(Exception):
    """Base class for email errors."""

    pass


def send_email(to, subject, template, **kwargs):
    """Send an email to a recipient.

    Raises:
        EmailError: If sending the email fails.
    """
    msg = Message(
        subject,
        recipients=[to],
        html=render_template(template, **kwargs),
        sender=current_app.config["MAIL_DEFAULT_SENDER"],
    )
    try:
        mail.send(msg)
    except smtplib.SMTPAuthenticationError as e:
        if e.smtp_code == SMTP_AUTH_ERROR_CODE:
            raise EmailError(
                "Authentication failed. The mail provider requires an App Password. "
                "Please verify your MAIL_USERNAME and MAIL_PASSWORD settings."
            ) from e
        raise EmailError(f"SMTP Authentication failed: {e}") from e
    except Exception as e:
        raise EmailError(f"Failed to send email: {e}") from e


def utcnow() -> datetime.datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.datetime.now(datetime.timezone.utc)


def epoch_millis(moment: datetime.datetime) -> int:
    """Milliseconds since the epoch, used for time-based identifiers."""
    return int(moment.timestamp() * 1000)


def parse_datetime(value: Any) -> datetime.datetime:
    """Parse an ISO-8601 date or datetime into an aware UTC datetime.

    Naive values are taken to be UTC. A bare date becomes midnight UTC.

    Raises:
        ValueError: If the value cannot be parsed.
        OverflowError: If the value falls outside the datetime range in UTC.
    """
    if isinstance(value, datetime.datetime):
        parsed = value
    elif isinstance(value, datetime.date):
        parsed = datetime.datetime.combine(value, datetime.time.min)
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.datetime.fromisoformat(text)
    else:
        raise ValueError(f"Invalid date value: {value!r}")

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=datetime.timezone.utc)
    return parsed.astimezone(datetime.timezone.utc)


def sanitize(text: str | None) -> str:
    """Strip HTML tags from user supplied text."""
    if not text:
        return ""
    return _TAG_RE.sub("", text).strip()


def to_json(value: Any) -> Any:
    """Recursively convert Firestore values into JSON friendly ones."""
    if isinstance(value, dict):
        return {k: to_json(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json(v) for v in value]
    if isinstance(value, (datetime.datetime, datetime.date)):
        return value.isoformat()
    return value


def get_json_body() -> dict[str, Any]:
    """Return the JSON object sent with the current request."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object.")
    return data
