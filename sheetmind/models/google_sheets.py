"""Pydantic models for Google Sheets sources and spreadsheet metadata."""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from sheetmind.utils.sheets_url import extract_gid, extract_spreadsheet_id


class SheetMetadata(BaseModel):
    """Per-sheet properties returned by the spreadsheet metadata endpoint."""

    title: str = Field(..., description="Sheet (tab) title as stored by Google")
    sheet_id: int = Field(default=0, description="Numeric sheetId, matches the URL gid")
    row_count: Optional[int] = Field(default=None, ge=0, description="Declared grid rows")
    column_count: Optional[int] = Field(default=None, ge=0, description="Declared grid columns")

    @classmethod
    def from_api(cls, sheet: Dict[str, Any]) -> "SheetMetadata":
        """Build from one entry of the API's `sheets` array."""
        props = sheet.get("properties", {}) or {}
        grid = props.get("gridProperties", {}) or {}
        return cls(
            title=str(props.get("title", "")),
            sheet_id=int(props.get("sheetId", 0) or 0),
            row_count=grid.get("rowCount"),
            column_count=grid.get("columnCount"),
        )


class SpreadsheetInfo(BaseModel):
    """Spreadsheet title plus its sheets in source order."""

    spreadsheet_id: str
    title: str = "Google Sheet"
    sheets: List[SheetMetadata] = Field(default_factory=list)

    def select(self, sheet_names: Optional[List[str]]) -> List[SheetMetadata]:
        """Filter sheets by title; None means all sheets."""
        if sheet_names is None:
            return list(self.sheets)
        allowed = set(sheet_names)
        return [s for s in self.sheets if s.title in allowed]


class GoogleSheetsSource(BaseModel):
    """A Google Sheets document to load.

    The access token is optional and short-lived; without one only public
    spreadsheets can be read.
    """

    url: str = Field(..., description="Google Sheets URL containing /spreadsheets/d/<id>")
    access_token: Optional[str] = Field(default=None, description="OAuth bearer token")
    sheet_names: Optional[List[str]] = Field(
        default=None,
        description="Only load these sheet titles (None loads every sheet)"
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate that the URL carries a spreadsheet ID."""
        v = v.strip()
        if extract_spreadsheet_id(v) is None:
            raise ValueError(
                "Invalid Google Sheets link. Make sure it contains '/spreadsheets/d/<id>'."
            )
        return v

    @field_validator("access_token")
    @classmethod
    def blank_token_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v

    @property
    def spreadsheet_id(self) -> str:
        return extract_spreadsheet_id(self.url) or ""

    @property
    def gid(self) -> Optional[int]:
        return extract_gid(self.url)

    model_config = {
        "json_schema_extra": {
            "example": {
                "url": "https://docs.google.com/spreadsheets/d/1abc123xyz/edit#gid=0",
                "access_token": None,
                "sheet_names": ["Products"],
            }
        }
    }
