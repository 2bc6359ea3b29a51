"""
CanonicalDeal model: the platform's standard-independent view of a loan deal.

Values are typed loosely on purpose so that a deal holding bad data can still
be constructed and then reported on by the preflight validator.
"""

from datetime import date
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

Numeric = Decimal | int | float | str
DateLike = date | str


class CanonicalRecord(BaseModel):
    """Nested deal record; unknown keys are kept and later routed to extensions."""

    model_config = ConfigDict(extra="allow")

    @property
    def extra_fields(self) -> dict[str, Any]:
        return dict(self.model_extra or {})


class LoanTerms(CanonicalRecord):
    """
    Loan terms of a deal.

    Attributes:
        loan_amount: Base loan amount
        interest_rate: Note rate percent
        loan_term_months: Maturity in months
        loan_purpose: MISMO LoanPurposeType value
        mortgage_type: MISMO MortgageType value
        amortization_type: MISMO AmortizationType value
        lien_priority: MISMO LienPriorityType value
        application_date: Date the application was received
        cash_out_amount: Cash-out amount on a cash-out refinance
    """

    loan_amount: Numeric | None = None
    interest_rate: Numeric | None = None
    loan_term_months: int | str | None = None
    loan_purpose: str | None = None
    mortgage_type: str | None = None
    amortization_type: str | None = None
    lien_priority: str | None = None
    application_date: DateLike | None = None
    cash_out_amount: Numeric | None = None


class Borrower(CanonicalRecord):
    first_name: str | None = None
    middle_name: str | None = None
    last_name: str | None = None
    suffix: str | None = None
    email: str | None = None
    phone: str | None = None
    marital_status: str | None = None
    birth_date: DateLike | None = None
    ssn: str | None = None


class Property(CanonicalRecord):
    street: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | int | None = None
    county: str | None = None
    property_type: str | None = None
    usage_type: str | None = None
    appraised_value: Numeric | None = None
    purchase_price: Numeric | None = None


class Fee(CanonicalRecord):
    fee_type: str | None = None
    amount: Numeric | None = None
    paid_to: str | None = None


class CanonicalDeal(BaseModel):
    """
    Internal representation of one loan deal.

    Any top-level key without a MISMO element path is moved into the
    ``extensions`` bag at construction, so nothing outside the path table is
    ever emitted as a core element.

    Attributes:
        deal_reference: Entity store key of the deal
        loan: Loan terms
        borrowers: Borrowers on the loan (preflight requires at least one)
        properties: Subject properties (preflight requires at least one)
        fees: Closing fees
        extensions: Free-form bag of proprietary fields keyed by name
    """

    model_config = ConfigDict(
        extra="forbid",
        json_schema_extra={
            "example": {
                "deal_reference": "DEAL-2024-0001",
                "loan": {
                    "loan_amount": "350000.00",
                    "interest_rate": "6.875",
                    "loan_term_months": 360,
                    "loan_purpose": "Purchase",
                },
                "borrowers": [{"first_name": "Ada", "last_name": "Byron", "email": "ada@example.com"}],
                "properties": [
                    {"street": "12 Elm St", "city": "Austin", "state": "TX", "postal_code": "78701"}
                ],
                "extensions": {"dscr_ratio": "1.25"},
            }
        },
    )

    deal_reference: str = Field(..., min_length=1)
    loan: LoanTerms = Field(default_factory=LoanTerms)
    borrowers: list[Borrower] = Field(default_factory=list)
    properties: list[Property] = Field(default_factory=list)
    fees: list[Fee] = Field(default_factory=list)
    extensions: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def move_unknown_keys_to_extensions(cls, data: Any) -> Any:
        """Route top-level keys that are not model fields into the extension bag."""
        if not isinstance(data, dict):
            return data

        unknown = {key: value for key, value in data.items() if key not in cls.model_fields}
        if not unknown:
            return data

        cleaned = {key: value for key, value in data.items() if key in cls.model_fields}
        extensions = dict(cleaned.get("extensions") or {})
        for key, value in unknown.items():
            extensions.setdefault(key, value)
        cleaned["extensions"] = extensions
        return cleaned

