"""
Fixed path table between canonical deal fields and MISMO element paths.

Paths are relative to DEAL. Entries of repeating scopes are relative to
their container and are indexed per record (``PARTIES/PARTY[2]/...``).
The table is built once at import and never modified.
"""

import re
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class PathEntry:
    """
    One mapped data point.

    Attributes:
        path: Element path (relative to DEAL, or to the scope container)
        field: Canonical attribute on the scope's record; None for constants
        value_type: Formatter used on the wire (see formatting.FORMATTERS)
        constant: Fixed text written for this path
        companion: Field that must hold a value for the constant to be written
    """

    path: str
    field: str | None = None
    value_type: str = "text"
    constant: str | None = None
    companion: str | None = None


@dataclass(frozen=True)
class Scope:
    """
    A group of entries read from one kind of canonical record.

    ``container`` is set for repeating scopes (one container per list item).
    """

    name: str
    entries: tuple[PathEntry, ...]
    container: str | None = None

    def records(self, deal) -> list[tuple[int | None, Any]]:
        if self.name == "deal":
            return [(None, deal)]
        if self.name == "loan":
            return [(None, deal.loan)]
        return list(enumerate(getattr(deal, self.name), start=1))

    def concrete(self, entry: PathEntry, index: int | None) -> str:
        if self.container is None:
            return entry.path
        return f"{self.container}[{index}]/{entry.path}"


DEAL_SCOPE = Scope("deal", (
    PathEntry("LOANS/LOAN/LOAN_IDENTIFIERS/LOAN_IDENTIFIER/LoanIdentifier", "deal_reference"),
    PathEntry("LOANS/LOAN/LOAN_IDENTIFIERS/LOAN_IDENTIFIER/LoanIdentifierType",
              constant="LenderLoan", companion="deal_reference"),
))

LOAN_SCOPE = Scope("loan", (
    PathEntry("LOANS/LOAN/TERMS_OF_LOAN/BaseLoanAmount", "loan_amount", "currency"),
    PathEntry("LOANS/LOAN/TERMS_OF_LOAN/NoteRatePercent", "interest_rate", "percent"),
    PathEntry("LOANS/LOAN/TERMS_OF_LOAN/LoanPurposeType", "loan_purpose"),
    PathEntry("LOANS/LOAN/TERMS_OF_LOAN/MortgageType", "mortgage_type"),
    PathEntry("LOANS/LOAN/TERMS_OF_LOAN/LienPriorityType", "lien_priority"),
    PathEntry("LOANS/LOAN/MATURITY/MATURITY_RULE/LoanMaturityPeriodCount", "loan_term_months", "integer"),
    PathEntry("LOANS/LOAN/MATURITY/MATURITY_RULE/LoanMaturityPeriodType",
              constant="Month", companion="loan_term_months"),
    PathEntry("LOANS/LOAN/AMORTIZATION/AMORTIZATION_RULE/AmortizationType", "amortization_type"),
    PathEntry("LOANS/LOAN/LOAN_DETAIL/ApplicationReceivedDate", "application_date", "date"),
    PathEntry("LOANS/LOAN/REFINANCE/RefinanceCashOutAmount", "cash_out_amount", "currency"),
))

PARTY_SCOPE = Scope("borrowers", (
    PathEntry("INDIVIDUAL/NAME/FirstName", "first_name"),
    PathEntry("INDIVIDUAL/NAME/MiddleName", "middle_name"),
    PathEntry("INDIVIDUAL/NAME/LastName", "last_name"),
    PathEntry("INDIVIDUAL/NAME/SuffixName", "suffix"),
    PathEntry("INDIVIDUAL/CONTACT_POINTS/CONTACT_POINT/CONTACT_POINT_EMAIL/ContactPointEmailValue", "email"),
    PathEntry("INDIVIDUAL/CONTACT_POINTS/CONTACT_POINT/CONTACT_POINT_TELEPHONE/ContactPointTelephoneValue", "phone"),
    PathEntry("ROLES/ROLE/BORROWER/BORROWER_DETAIL/BorrowerBirthDate", "birth_date", "date"),
    PathEntry("ROLES/ROLE/BORROWER/BORROWER_DETAIL/MaritalStatusType", "marital_status"),
    PathEntry("ROLES/ROLE/ROLE_DETAIL/PartyRoleType", constant="Borrower"),
    PathEntry("TAXPAYER_IDENTIFIERS/TAXPAYER_IDENTIFIER/TaxpayerIdentifierValue", "ssn"),
    PathEntry("TAXPAYER_IDENTIFIERS/TAXPAYER_IDENTIFIER/TaxpayerIdentifierType",
              constant="SocialSecurityNumber", companion="ssn"),
), container="PARTIES/PARTY")

COLLATERAL_SCOPE = Scope("properties", (
    PathEntry("SUBJECT_PROPERTY/ADDRESS/AddressLineText", "street"),
    PathEntry("SUBJECT_PROPERTY/ADDRESS/CityName", "city"),
    PathEntry("SUBJECT_PROPERTY/ADDRESS/StateCode", "state"),
    PathEntry("SUBJECT_PROPERTY/ADDRESS/PostalCode", "postal_code"),
    PathEntry("SUBJECT_PROPERTY/ADDRESS/CountyName", "county"),
    PathEntry("SUBJECT_PROPERTY/PROPERTY_DETAIL/PropertyType", "property_type"),
    PathEntry("SUBJECT_PROPERTY/PROPERTY_DETAIL/PropertyUsageType", "usage_type"),
    PathEntry("SUBJECT_PROPERTY/PROPERTY_VALUATIONS/PROPERTY_VALUATION/PROPERTY_VALUATION_DETAIL/PropertyValuationAmount",
              "appraised_value", "currency"),
    PathEntry("SUBJECT_PROPERTY/SALES_CONTRACTS/SALES_CONTRACT/SALES_CONTRACT_DETAIL/SalesContractAmount",
              "purchase_price", "currency"),
), container="COLLATERALS/COLLATERAL")

FEE_SCOPE = Scope("fees", (
    PathEntry("FEE_DETAIL/FeeType", "fee_type"),
    PathEntry("FEE_DETAIL/FeeActualTotalAmount", "amount", "currency"),
    PathEntry("FEE_DETAIL/FeePaidToType", "paid_to"),
), container="LOANS/LOAN/FEE_INFORMATION/FEES/FEE")

SCOPES: tuple[Scope, ...] = (DEAL_SCOPE, LOAN_SCOPE, PARTY_SCOPE, COLLATERAL_SCOPE, FEE_SCOPE)
LIST_SCOPES = {scope.name: scope for scope in SCOPES if scope.container is not None}

# Proprietary fields with a dedicated vendor element; anything else is
# written as a generic EXTENSION_FIELD keyed by name.
EXTENSION_FIELDS: dict[str, tuple[str, str]] = {
    "dscr_ratio": ("DSCRatio", "decimal"),
    "gross_rental_income": ("GrossRentalIncome", "currency"),
    "net_operating_income": ("NetOperatingIncome", "currency"),
    "annual_debt_service": ("AnnualDebtService", "currency"),
    "business_purpose_type": ("BusinessPurposeType", "text"),
    "is_business_purpose_loan": ("IsBusinessPurposeLoan", "boolean"),
    "investment_strategy": ("InvestmentStrategy", "text"),
    "exit_strategy": ("ExitStrategy", "text"),
    "entity_name": ("EntityName", "text"),
    "entity_ein": ("EntityEIN", "text"),
    "entity_formation_date": ("EntityFormationDate", "date"),
    "entity_formation_state": ("EntityFormationState", "text"),
    "prepay_penalty_type": ("PrepayPenaltyType", "text"),
    "prepay_penalty_term_months": ("PrepayPenaltyTermMonths", "integer"),
    "interest_only_period_months": ("InterestOnlyPeriodMonths", "integer"),
    "property_monthly_rent": ("PropertyMonthlyRent", "currency"),
    "property_annual_taxes": ("PropertyAnnualTaxes", "currency"),
    "property_annual_insurance": ("PropertyAnnualInsurance", "currency"),
    "property_monthly_hoa": ("PropertyMonthlyHOA", "currency"),
    "broker_compensation": ("BrokerCompensation", "currency"),
    "rehab_budget": ("RehabBudget", "currency"),
    "after_repair_value": ("AfterRepairValue", "currency"),
}
EXTENSION_ELEMENTS: dict[str, str] = {element: key for key, (element, _) in EXTENSION_FIELDS.items()}

GENERIC_EXTENSION_ELEMENT = "EXTENSION_FIELD"
EXTENSION_CONTAINER = "DEAL_EXTENSION"
EXTENSION_PATH = "LOANS/LOAN/EXTENSION/OTHER"

_FIXED_PATHS: dict[str, tuple[Scope, PathEntry]] = {
    entry.path: (scope, entry)
    for scope in SCOPES if scope.container is None
    for entry in scope.entries
}
_LIST_PATHS: dict[str, dict[str, PathEntry]] = {
    scope.name: {entry.path: entry for entry in scope.entries}
    for scope in SCOPES if scope.container is not None
}
_LIST_PATTERNS = [
    (scope, re.compile(rf"^{re.escape(scope.container)}\[(\d+)\]/(.+)$"))
    for scope in SCOPES if scope.container is not None
]


def match_path(path: str) -> tuple[Scope, int | None, PathEntry] | None:
    """Find the table entry for a concrete DEAL-relative path."""
    fixed = _FIXED_PATHS.get(path)
    if fixed is not None:
        scope, entry = fixed
        return scope, None, entry

    for scope, pattern in _LIST_PATTERNS:
        match = pattern.match(path)
        if match:
            entry = _LIST_PATHS[scope.name].get(match.group(2))
            if entry is not None:
                return scope, int(match.group(1)), entry
    return None


def mapped_fields(scope_name: str) -> frozenset[str]:
    """Canonical field names a scope maps to core elements."""
    for scope in SCOPES:
        if scope.name == scope_name:
            return frozenset(e.field for e in scope.entries if e.field is not None)
    raise KeyError(scope_name)
