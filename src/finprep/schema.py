"""Fixed schemas for the raw sources and the two output datasets.

Input schemas list the columns each export is expected to carry. Columns
marked ``required`` are keys the joins depend on; the rest are optional
and their transforms are skipped (with a warning) when absent.

Output schemas carry the constraints checked by ``finprep.quality``
before anything is written.
"""

from __future__ import annotations

import pydantic as pdt

# Position of a row in its source file. Drives keep-first deduplication and
# the final row order; never written out.
ROW_ID = "__row_id"


class Field(pdt.BaseModel, frozen=True, extra="forbid"):
    """Column definition with optional constraints."""

    description: str | None = None
    required: bool = False
    # Arrow type given to the column when a file has no values for it
    dtype: str = "string"
    not_null: bool = False
    unique: bool = False
    gt: float | None = None
    allowed_values: list[str] | None = None

    @property
    def has_constraints(self) -> bool:
        return (
            self.not_null
            or self.unique
            or self.gt is not None
            or self.allowed_values is not None
        )


class Schema:
    """Column set declared as Field class attributes.

    Example:
        class CardsSchema(Schema):
            id = Field(required=True)
            credit_limit = Field(required=True, description="Currency text")
    """

    @classmethod
    def fields(cls) -> list[tuple[str, Field]]:
        """Return (name, field) pairs in declaration order."""
        return [
            (name, value)
            for name, value in vars(cls).items()
            if not name.startswith("_") and isinstance(value, Field)
        ]

    @classmethod
    def field_names(cls) -> list[str]:
        return [name for name, _ in cls.fields()]

    @classmethod
    def required_names(cls) -> list[str]:
        return [name for name, f in cls.fields() if f.required]


# -- Inputs --


class UsersSchema(Schema):
    id = Field(required=True, dtype="int64", description="Cardholder id")
    current_age = Field()
    retirement_age = Field()
    birth_year = Field()
    birth_month = Field()
    gender = Field()
    address = Field()
    latitude = Field()
    longitude = Field()
    per_capita_income = Field(description="Currency text, e.g. $29278")
    yearly_income = Field(description="Currency text")
    total_debt = Field(description="Currency text")
    credit_score = Field()
    num_credit_cards = Field()


class CardsSchema(Schema):
    id = Field(required=True, dtype="int64", description="Card id")
    client_id = Field(required=True, dtype="int64", description="Owning user id")
    card_brand = Field()
    card_type = Field()
    card_number = Field()
    expires = Field(description="MM/YYYY text")
    cvv = Field()
    has_chip = Field(description="YES/NO text")
    num_cards_issued = Field()
    credit_limit = Field(required=True, description="Currency text")
    acct_open_date = Field(description="MM/YYYY text")
    year_pin_last_changed = Field()
    card_on_dark_web = Field(description="Yes/No text")


class TransactionsSchema(Schema):
    id = Field(required=True, dtype="int64", description="Transaction id")
    date = Field(description="ISO timestamp")
    client_id = Field(required=True, dtype="int64")
    card_id = Field(required=True, dtype="int64")
    amount = Field(required=True, description="Currency text, refunds negative")
    use_chip = Field()
    merchant_id = Field()
    merchant_city = Field()
    merchant_state = Field()
    zip = Field()
    mcc = Field(required=True, dtype="int64", description="Merchant category code")
    errors = Field(required=True, description="Comma-delimited error phrases")


class FraudLabelsSchema(Schema):
    transaction_id = Field(required=True, dtype="int64")
    target = Field(required=True, description="Yes/No fraud label")


# -- Outputs --

TARGET_VALUES = ["No", "Yes"]


class FraudDetectionSchema(Schema):
    id = Field(not_null=True, unique=True)
    target = Field(not_null=True, allowed_values=TARGET_VALUES)


class CreditLimitSchema(Schema):
    id = Field(not_null=True, unique=True)
    credit_limit = Field(not_null=True, gt=0)
