"""
MappingResult model: core MISMO fields and extension fields of one deal.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class UnmappedNode(BaseModel):
    """
    XML content with no canonical counterpart, kept verbatim.

    Attributes:
        xpath: Absolute element path, indexed where siblings repeat
        raw_value: Text content of the element, exactly as received
    """

    model_config = ConfigDict(frozen=True)

    xpath: str
    raw_value: str = ""


class MappingResult(BaseModel):
    """
    Output of the canonical field mapper.

    Attributes:
        core_fields: DEAL-relative MISMO element path -> wire text, in path table order
        extension_fields: Extension field name -> value
        unmapped_nodes: Nodes the mapper could not place (import only)
    """

    core_fields: dict[str, str] = Field(default_factory=dict)
    extension_fields: dict[str, Any] = Field(default_factory=dict)
    unmapped_nodes: list[UnmappedNode] = Field(default_factory=list)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "core_fields": {
                    "LOANS/LOAN/TERMS_OF_LOAN/BaseLoanAmount": "350000.00",
                    "PARTIES/PARTY[1]/INDIVIDUAL/NAME/FirstName": "Ada",
                },
                "extension_fields": {"dscr_ratio": "1.25"},
                "unmapped_nodes": [
                    {"xpath": "/MESSAGE/DEAL_SETS/DEAL_SET/DEALS/DEAL/LOANS/LOAN/HMDA_LOAN/HMDARateSpreadPercent",
                     "raw_value": "1.25"}
                ],
            }
        }
    )
