from flask_wtf import FlaskForm
from wtforms import IntegerField, StringField
from wtforms.validators import DataRequired, Length, NumberRange, Optional

from hawkerhub.core.constants import MAX_RATING, MIN_RATING


class ReviewForm(FlaskForm):
    """A vendor's review of a product."""

    class Meta:
        csrf = False

    productId = StringField("Product", validators=[DataRequired()])
    rating = IntegerField(
        "Rating", validators=[DataRequired(), NumberRange(min=MIN_RATING, max=MAX_RATING)]
    )
    comment = StringField("Comment", validators=[Optional(), Length(max=1000)])


class ReviewUpdateForm(FlaskForm):
    class Meta:
        csrf = False

    rating = IntegerField(
        "Rating", validators=[Optional(), NumberRange(min=MIN_RATING, max=MAX_RATING)]
    )
    comment = StringField("Comment", validators=[Optional(), Length(max=1000)])
