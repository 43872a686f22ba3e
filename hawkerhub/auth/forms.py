from flask_wtf import FlaskForm
from wtforms import EmailField, StringField
from wtforms.validators import AnyOf, DataRequired, Email, Length, Optional, Regexp

from hawkerhub.core.constants import USER_ROLES


class ProfileForm(FlaskForm):
    """Profile details a vendor or supplier completes after signing in."""

    class Meta:
        csrf = False

    name = StringField("Name", validators=[DataRequired(), Length(max=100)])
    role = StringField("Role", validators=[DataRequired(), AnyOf(USER_ROLES)])
    phoneNumber = StringField(
        "Phone Number",
        validators=[
            Optional(),
            Regexp(r"^\+?91?[6-9]\d{9}$", message="Enter a valid Indian mobile number."),
        ],
    )
    email = EmailField("Email", validators=[Optional(), Email()])
    businessName = StringField("Business Name", validators=[Optional(), Length(max=120)])
    location = StringField("Location", validators=[Optional(), Length(max=200)])
