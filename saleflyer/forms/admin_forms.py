"""
Admin console forms.
Field names match the repository payloads so `form.data` can be handed to the
services after dropping the CSRF token.
"""
from flask_wtf import FlaskForm
from flask_wtf.file import FileAllowed, FileField
from wtforms import BooleanField, DateField, DecimalField, PasswordField, SelectField, StringField
from wtforms.validators import DataRequired, Length, NumberRange, Optional, Regexp, ValidationError

from saleflyer.models import ProductCategory, SaleTheme

HEX_COLOR = Regexp(r'^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$', message='Use a hex color like #F59E0B')

SALE_THEME_CHOICES = [
    (SaleTheme.GENERAL.value, 'General'),
    (SaleTheme.EASTER.value, 'Easter'),
    (SaleTheme.HALLOWEEN.value, 'Halloween'),
    (SaleTheme.VICTORIA_DAY.value, 'Victoria Day'),
    (SaleTheme.CHRISTMAS.value, 'Christmas'),
]

CATEGORY_CHOICES = [(c.value, c.value.capitalize()) for c in ProductCategory]


def payload(form: FlaskForm) -> dict:
    """Form data without the CSRF token and without empty optional values."""
    return {
        key: value for key, value in form.data.items()
        if key not in ('csrf_token', 'submit') and value not in (None, '')
    }


class LoginForm(FlaskForm):
    password = PasswordField('Password', validators=[DataRequired(message='Password is required')])


class SaleForm(FlaskForm):
    """Create/edit a sale. Colors left blank come from the theme tag palette."""

    name = StringField(
        'Sale Name',
        validators=[DataRequired(message='Sale name is required'), Length(max=200)],
        render_kw={'placeholder': 'e.g. Halloween Special'}
    )
    theme = SelectField('Seasonal Theme', choices=SALE_THEME_CHOICES, default=SaleTheme.GENERAL.value)
    theme_id = SelectField('Flyer Theme', choices=[('', 'None (use sale colors)')], validators=[Optional()])
    start_date = DateField('Start Date', validators=[DataRequired(message='Start date is required')], format='%Y-%m-%d')
    end_date = DateField('End Date', validators=[DataRequired(message='End date is required')], format='%Y-%m-%d')
    background_color = StringField('Background Color', validators=[Optional(), HEX_COLOR])
    accent_color = StringField('Accent Color', validators=[Optional(), HEX_COLOR])
    is_active = BooleanField('Make this the active sale')

    def validate_end_date(self, field):
        if self.start_date.data and field.data and field.data < self.start_date.data:
            raise ValidationError('End date must be on or after the start date')


class ProductForm(FlaskForm):
    product_name = StringField('Product Name', validators=[DataRequired(message='Product name is required'), Length(max=200)])
    original_price = DecimalField(
        'Original Price',
        places=2,
        validators=[DataRequired(message='Original price is required'), NumberRange(min=0.01)],
        render_kw={'step': '0.01', 'min': '0.01'}
    )
    sale_price = DecimalField(
        'Sale Price',
        places=2,
        validators=[DataRequired(message='Sale price is required'), NumberRange(min=0.01)],
        render_kw={'step': '0.01', 'min': '0.01'}
    )
    category = SelectField('Category', choices=CATEGORY_CHOICES, default=ProductCategory.SPIRITS.value)
    size = StringField('Size', validators=[Optional(), Length(max=50)], render_kw={'placeholder': '750ml'})
    badge_text = StringField('Badge', validators=[Optional(), Length(max=50)], render_kw={'placeholder': 'Limited Time'})
    product_image = StringField('Image URL', validators=[Optional(), Length(max=512)])


class ThemeForm(FlaskForm):
    name = StringField('Theme Name', validators=[DataRequired(message='Theme name is required'), Length(max=120)])
    background_color = StringField('Background Color', validators=[DataRequired(), HEX_COLOR], default='#F59E0B')
    accent_color = StringField('Accent Color', validators=[DataRequired(), HEX_COLOR], default='#1A1A1A')
    header_image = FileField('Header Image', validators=[FileAllowed(['jpg', 'jpeg', 'png', 'gif', 'webp'], 'Images only')])
