from flask_wtf import FlaskForm
from wtforms import DateTimeLocalField, DecimalField, IntegerField, StringField
from wtforms.validators import DataRequired, Length, NumberRange, Optional


class ProductForm(FlaskForm):
    """Fields a supplier fills in to list a product."""

    class Meta:
        csrf = False

    name = StringField("Name", validators=[DataRequired(), Length(max=120)])
    description = StringField("Description", validators=[Optional(), Length(max=1000)])
    category = StringField("Category", validators=[Optional(), Length(max=60)])
    unit = StringField("Unit", validators=[Optional(), Length(max=20)])
    price = DecimalField("Price", places=2, validators=[NumberRange(min=0)])
    availableQuantity = IntegerField(
        "Available Quantity", validators=[NumberRange(min=0)]
    )
    imageUrl = StringField("Image URL", validators=[Optional()])


class FlashSaleForm(FlaskForm):
    class Meta:
        csrf = False

    salePrice = DecimalField("Sale Price", places=2, validators=[NumberRange(min=0)])
    saleEndDate = DateTimeLocalField(
        "Sale End Date",
        format=["%Y-%m-%dT%H:%M", "%Y-%m-%dT%H:%M:%S"],
        validators=[DataRequired()],
    )


class StockForm(FlaskForm):
    class Meta:
        csrf = False

    quantityChange = IntegerField(
        "Quantity Change", validators=[NumberRange(min=-100000, max=100000)]
    )
