"""Pydantic model for IMPORTRANGE cross-spreadsheet references."""
from typing import Optional

from pydantic import BaseModel, Field


class CrossReference(BaseModel):
    """A reference from one workbook cell to another spreadsheet.

    Informational only: it tells the caller that the workbook depends on
    another spreadsheet's sharing permissions.
    """

    target_spreadsheet_id: str = Field(
        ...,
        min_length=1,
        description="Spreadsheet ID extracted from the referenced URL"
    )
    target_range: str = Field(
        ...,
        description="Range argument of the IMPORTRANGE call (e.g. 'Sheet1!A:Z')"
    )
    found_in_sheet: str = Field(..., description="Sheet containing the formula")
    found_in_cell: str = Field(..., description="A1-style address of the formula cell")
    target_url: str = Field(default="", description="URL argument as written in the formula")
    target_sheet_name: Optional[str] = Field(
        default=None,
        description="Sheet name part of target_range, if present"
    )

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "example": {
                "target_spreadsheet_id": "1abc123xyz",
                "target_range": "Sheet1!A:Z",
                "found_in_sheet": "Data",
                "found_in_cell": "B7",
                "target_url": "https://docs.google.com/spreadsheets/d/1abc123xyz",
                "target_sheet_name": "Sheet1",
            }
        },
    }
