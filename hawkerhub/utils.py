"""Utility functions for the application."""

import datetime
import smtplib

from flask import current_app, request
from flask_mail import Message

from .core.constants import SMTP_AUTH_ERROR_CODE
from .errors import ValidationError
from .extensions import mail


class EmailError(Exception):
    """Base class for email errors."""

    pass


def send_email(to, subject, body):
    """Send a plain-text email to a recipient.

    Raises:
        EmailError: If sending the email fails.
    """
    msg = Message(
        subject,
        recipients=[to],
        body=body,
        sender=current_app.config["MAIL_DEFAULT_SENDER"],
    )
    try:
        mail.send(msg)
    except smtplib.SMTPAuthenticationError as e:
        if e.smtp_code == SMTP_AUTH_ERROR_CODE:
            raise EmailError(
                "Authentication failed. Google requires you to use an App Password. "
                "Please verify your MAIL_USERNAME and MAIL_PASSWORD settings."
            ) from e
        raise EmailError(f"SMTP Authentication failed: {e}") from e
    except Exception as e:
        raise EmailError(f"Failed to send email: {e}") from e


def validate_form(form):
    """Validate a Flask-WTF form built from a JSON body, raising on failure."""
    if form.validate():
        return form
    messages = []
    for field_name, errors in form.errors.items():
        for error in errors:
            messages.append(f"{field_name}: {error}")
    raise ValidationError("; ".join(messages) or "Validation failed.")


def get_json_body():
    """Return the request JSON body as a dict, or raise a ValidationError."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object.")
    return data


def to_json_safe(value):
    """Convert Firestore values (timestamps, sentinels, references) for jsonify."""
    if isinstance(value, dict):
        return {k: to_json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json_safe(v) for v in value]
    if isinstance(value, (datetime.datetime, datetime.date)):
        return value.isoformat()
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if hasattr(value, "id") and hasattr(value, "path"):
        # DocumentReference
        return value.id
    # SERVER_TIMESTAMP and other write sentinels have no client-side value yet.
    return None
