"""Request DTOs for API endpoints.

Pydantic v2 models for API request validation.
File content is handled separately via UploadFile in the API layer.
"""

from datetime import date

from pydantic import BaseModel, Field, model_validator


class UploadInvoicesRequest(BaseModel):
    """Options for a batch upload."""

    enable_validation: bool = Field(
        default=True,
        description="Run validation rules on extracted data",
    )
    enable_duplicate_detection: bool = Field(
        default=True,
        description="Flag invoices with the same number, vendor and date",
    )


class ListInvoicesRequest(BaseModel):
    """Filters and paging for the invoice list."""

    page: int = Field(default=1, ge=1, description="1-based page number")
    page_size: int = Field(default=20, ge=1, le=100, description="Invoices per page")
    vendor_name: str | None = Field(
        default=None,
        description="Case-insensitive vendor name substring",
        examples=["Fresh Foods"],
    )
    date_from: date | None = Field(default=None, description="Invoice date on or after")
    date_to: date | None = Field(default=None, description="Invoice date on or before")

    @model_validator(mode="after")
    def check_date_range(self) -> "ListInvoicesRequest":
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("date_from must not be after date_to")
        return self
