# wholesale/forms/checkout_form.py
from __future__ import annotations

from flask_wtf import FlaskForm
from wtforms import IntegerField, StringField, TextAreaField
from wtforms.validators import DataRequired, Email, Length, Optional, Regexp


class CheckoutForm(FlaskForm):
    """
    Contact + pickup details collected before the card is charged.
    Posted as JSON by the storefront; CSRF follows WTF_CSRF_ENABLED.
    """

    customer_name = StringField(
        "Name",
        validators=[
            DataRequired(message="Name is required"),
            Length(max=120, message="Name must be under 120 characters."),
        ],
    )

    customer_email = StringField(
        "Email",
        validators=[
            DataRequired(message="Email is required"),
            Email(message="Please enter a valid email address"),
            Length(max=255),
        ],
    )

    customer_phone = StringField(
        "Phone",
        validators=[
            DataRequired(message="Phone number is required"),
            Regexp(r"^\+?[0-9 ()\-]{7,20}$", message="Please enter a valid phone number"),
        ],
    )

    pickup_location = StringField(
        "Pickup location",
        default="restaurant",
        validators=[DataRequired(message="Pickup location is required")],
    )

    notes = TextAreaField("Notes", validators=[Optional(), Length(max=1000)])

    participant_id = IntegerField("Supporting", validators=[Optional()])

    def first_errors(self) -> dict:
        return {name: errs[0] for name, errs in self.errors.items() if errs}
