"""Forms for the group order blueprint."""

import datetime

from flask_wtf import FlaskForm
from wtforms import StringField, ValidationError
from wtforms.validators import Length, Optional


def parse_deadline(value):
    """Parse an ISO 8601 date or datetime, treating naive values as UTC."""
    deadline = datetime.datetime.fromisoformat(str(value))
    if deadline.tzinfo is None:
        deadline = deadline.replace(tzinfo=datetime.timezone.utc)
    return deadline


class GroupOrderForm(FlaskForm):
    """Scalar fields of a new group order.

    ``products`` and ``discountTiers`` are nested lists and are read from the
    JSON body by the route.
    """

    class Meta:
        csrf = False

    title = StringField("Title", validators=[Optional(), Length(max=120)])
    deadline = StringField("Deadline", validators=[Optional()])

    def validate_deadline(self, field):
        """Validate that the deadline is an ISO 8601 date or datetime."""
        try:
            parse_deadline(field.data)
        except ValueError as e:
            raise ValidationError("Must be an ISO 8601 date or datetime.") from e

    def deadline_value(self):
        if not self.deadline.data:
            return None
        return parse_deadline(self.deadline.data)
