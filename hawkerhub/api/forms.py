from flask_wtf import FlaskForm
from wtforms import IntegerField, StringField
from wtforms.validators import DataRequired, Length, NumberRange, Optional

from hawkerhub.core.constants import MAX_RATING, MIN_RATING


class RatingForm(FlaskForm):
    """A rating one party leaves for the other after an order."""

    class Meta:
        csrf = False

    orderId = StringField("Order", validators=[DataRequired()])
    raterId = StringField("Rater", validators=[DataRequired()])
    ratedId = StringField("Rated", validators=[DataRequired()])
    value = IntegerField(
        "Rating", validators=[DataRequired(), NumberRange(min=MIN_RATING, max=MAX_RATING)]
    )
    comment = StringField("Comment", validators=[Optional(), Length(max=1000)])
