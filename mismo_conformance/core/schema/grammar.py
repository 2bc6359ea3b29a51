"""
MISMO 3.4 content model used for strict structural validation.

Each container lists its children in schema sequence order together with
their cardinality. Containers follow the MISMO convention of alphabetical
child ordering. Data points (leaf elements) have no entry of their own.
"""

from dataclasses import dataclass

UNBOUNDED = None


@dataclass(frozen=True)
class ChildRule:
    name: str
    min_occurs: int = 0
    max_occurs: int | None = 1


def _seq(*children: ChildRule | str) -> tuple[ChildRule, ...]:
    return tuple(ChildRule(c) if isinstance(c, str) else c for c in children)


def _required(name: str) -> ChildRule:
    return ChildRule(name, 1, 1)


def _many(name: str) -> ChildRule:
    return ChildRule(name, 1, UNBOUNDED)


CONTENT_MODEL: dict[str, tuple[ChildRule, ...]] = {
    "MESSAGE": _seq("ABOUT_VERSIONS", _required("DEAL_SETS"), "MESSAGE_HEADER"),
    "ABOUT_VERSIONS": _seq(_many("ABOUT_VERSION")),
    "ABOUT_VERSION": _seq("CreatedDatetime", "DataVersionIdentifier", "DataVersionName"),
    "MESSAGE_HEADER": _seq("MISMOLogicalDataDictionaryIdentifier", "MessageIdentifier"),
    "DEAL_SETS": _seq(_many("DEAL_SET")),
    "DEAL_SET": _seq(_required("DEALS")),
    "DEALS": _seq(_many("DEAL")),
    "DEAL": _seq("COLLATERALS", _required("LOANS"), "PARTIES", "RELATIONSHIPS"),
    # Collateral
    "COLLATERALS": _seq(_many("COLLATERAL")),
    "COLLATERAL": _seq(_required("SUBJECT_PROPERTY")),
    "SUBJECT_PROPERTY": _seq("ADDRESS", "PROPERTY_DETAIL", "PROPERTY_VALUATIONS", "SALES_CONTRACTS"),
    "ADDRESS": _seq("AddressLineText", "CityName", "CountyName", "PostalCode", "StateCode"),
    "PROPERTY_DETAIL": _seq("PropertyType", "PropertyUsageType"),
    "PROPERTY_VALUATIONS": _seq(_many("PROPERTY_VALUATION")),
    "PROPERTY_VALUATION": _seq("PROPERTY_VALUATION_DETAIL"),
    "PROPERTY_VALUATION_DETAIL": _seq("PropertyValuationAmount"),
    "SALES_CONTRACTS": _seq(_many("SALES_CONTRACT")),
    "SALES_CONTRACT": _seq("SALES_CONTRACT_DETAIL"),
    "SALES_CONTRACT_DETAIL": _seq("SalesContractAmount"),
    # Loan
    "LOANS": _seq(_many("LOAN")),
    "LOAN": _seq(
        "AMORTIZATION",
        "EXTENSION",
        "FEE_INFORMATION",
        "LOAN_DETAIL",
        "LOAN_IDENTIFIERS",
        "MATURITY",
        "REFINANCE",
        _required("TERMS_OF_LOAN"),
    ),
    "AMORTIZATION": _seq("AMORTIZATION_RULE"),
    "AMORTIZATION_RULE": _seq("AmortizationType"),
    "EXTENSION": _seq("MISMO", "OTHER"),
    "FEE_INFORMATION": _seq("FEES"),
    "FEES": _seq(_many("FEE")),
    "FEE": _seq("FEE_DETAIL"),
    "FEE_DETAIL": _seq("FeeActualTotalAmount", "FeePaidToType", "FeeType"),
    "LOAN_DETAIL": _seq("ApplicationReceivedDate"),
    "LOAN_IDENTIFIERS": _seq(_many("LOAN_IDENTIFIER")),
    "LOAN_IDENTIFIER": _seq("LoanIdentifier", "LoanIdentifierType"),
    "MATURITY": _seq("MATURITY_RULE"),
    "MATURITY_RULE": _seq("LoanMaturityPeriodCount", "LoanMaturityPeriodType"),
    "REFINANCE": _seq("RefinanceCashOutAmount"),
    "TERMS_OF_LOAN": _seq("BaseLoanAmount", "LienPriorityType", "LoanPurposeType", "MortgageType", "NoteRatePercent"),
    # Parties
    "PARTIES": _seq(_many("PARTY")),
    "PARTY": _seq("INDIVIDUAL", "ROLES", "TAXPAYER_IDENTIFIERS"),
    "INDIVIDUAL": _seq("CONTACT_POINTS", "NAME"),
    "CONTACT_POINTS": _seq(_many("CONTACT_POINT")),
    "CONTACT_POINT": _seq("CONTACT_POINT_EMAIL", "CONTACT_POINT_TELEPHONE"),
    "CONTACT_POINT_EMAIL": _seq("ContactPointEmailValue"),
    "CONTACT_POINT_TELEPHONE": _seq("ContactPointTelephoneValue"),
    "NAME": _seq("FirstName", "LastName", "MiddleName", "SuffixName"),
    "ROLES": _seq(_many("ROLE")),
    "ROLE": _seq("BORROWER", "ROLE_DETAIL"),
    "BORROWER": _seq("BORROWER_DETAIL"),
    "BORROWER_DETAIL": _seq("BorrowerBirthDate", "MaritalStatusType"),
    "ROLE_DETAIL": _seq("PartyRoleType"),
    "TAXPAYER_IDENTIFIERS": _seq(_many("TAXPAYER_IDENTIFIER")),
    "TAXPAYER_IDENTIFIER": _seq("TaxpayerIdentifierType", "TaxpayerIdentifierValue"),
    "RELATIONSHIPS": _seq(_many("RELATIONSHIP")),
    "RELATIONSHIP": (),
}

# Containers whose occurrences are told apart by position (PARTY[2], ...)
REPEATING_CONTAINERS = frozenset({"COLLATERAL", "PARTY", "FEE"})

# Logical data dictionary enumerations for the data points the pipeline maps
LDD_ENUMS: dict[str, tuple[str, ...]] = {
    "LoanPurposeType": (
        "CashOutRefinance", "ConstructionOnly", "ConstructionToPermanent", "HELOC",
        "NoCashOutRefinance", "Other", "Purchase", "SecondMortgage",
    ),
    "PropertyType": (
        "Attached", "Commercial", "Condominium", "Cooperative", "Detached", "HighRiseCondominium",
        "Land", "ManufacturedHousing", "MixedUse", "Modular", "Multifamily", "Other",
        "PUDAttached", "PUDDetached", "SingleFamily", "Townhouse", "TwoToFourFamily",
    ),
    "PropertyUsageType": ("Investment", "PrimaryResidence", "SecondHome"),
    "AmortizationType": (
        "AdjustableRate", "Fixed", "GraduatedPaymentARM", "GraduatedPaymentMortgage",
        "GrowingEquityMortgage", "InterestOnly", "Other", "Step",
    ),
    "MortgageType": ("Conventional", "FHA", "FarmersHomeAdministration", "Other", "USDA-RHS", "VA"),
    "MaritalStatusType": ("Married", "Separated", "Unmarried"),
    "LienPriorityType": ("FirstLien", "FourthLien", "Other", "SecondLien", "ThirdLien"),
    "PartyRoleType": ("Borrower", "Lender", "LoanOriginator", "PropertySeller"),
    "LoanIdentifierType": ("AgencyCase", "InvestorLoan", "LenderCase", "LenderLoan", "MERS_MIN", "Other"),
    "LoanMaturityPeriodType": ("Biweekly", "Day", "Month", "Quarter", "Semimonthly", "Week", "Year"),
    "TaxpayerIdentifierType": (
        "EmployerIdentificationNumber", "IndividualTaxpayerIdentificationNumber", "SocialSecurityNumber",
    ),
    "StateCode": (
        "AK", "AL", "AR", "AZ", "CA", "CO", "CT", "DC", "DE", "FL", "GA", "GU", "HI", "IA", "ID",
        "IL", "IN", "KS", "KY", "LA", "MA", "MD", "ME", "MI", "MN", "MO", "MS", "MT", "NC", "ND",
        "NE", "NH", "NJ", "NM", "NV", "NY", "OH", "OK", "OR", "PA", "PR", "RI", "SC", "SD", "TN",
        "TX", "UT", "VA", "VI", "VT", "WA", "WI", "WV", "WY",
    ),
}

DATATYPE_PATTERNS: dict[str, str] = {
    "Amount": r"^-?\d+(\.\d{1,2})?$",
    "Percent": r"^-?\d+(\.\d{1,4})?$",
    "Count": r"^\d+$",
    "Date": r"^\d{4}-\d{2}-\d{2}$",
    "PostalCode": r"^\d{5}(-\d{4})?$",
}

# Data point -> datatype checked against DATATYPE_PATTERNS under the strict profile
ELEMENT_DATATYPES: dict[str, str] = {
    "BaseLoanAmount": "Amount",
    "PropertyValuationAmount": "Amount",
    "SalesContractAmount": "Amount",
    "RefinanceCashOutAmount": "Amount",
    "FeeActualTotalAmount": "Amount",
    "NoteRatePercent": "Percent",
    "LoanMaturityPeriodCount": "Count",
    "ApplicationReceivedDate": "Date",
    "BorrowerBirthDate": "Date",
    "PostalCode": "PostalCode",
}


def child_rules(element_name: str) -> tuple[ChildRule, ...] | None:
    """Return the child sequence of a container, or None for data points and unknowns."""
    return CONTENT_MODEL.get(element_name)


def child_rank(parent_name: str, child_name: str) -> int:
    """Position of child_name in the parent's sequence; unknown children sort last."""
    rules = CONTENT_MODEL.get(parent_name, ())
    for idx, rule in enumerate(rules):
        if rule.name == child_name:
            return idx
    return len(rules)


def is_known_child(parent_name: str, child_name: str) -> bool:
    return any(rule.name == child_name for rule in CONTENT_MODEL.get(parent_name, ()))
