# stitchquote/schemas/quote.py
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from stitchquote.domain.assessment import QuoteCategory
from stitchquote.models.quote import QUOTE_STATUSES


class QuoteRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    # Customer data from the quote form
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    phone: str = Field("", max_length=50)
    category: QuoteCategory = QuoteCategory.AUTO
    notes: str = Field("", max_length=4000)

    # URLs returned by /api/upload
    photo_urls: List[str] = Field(default_factory=list, alias="photoUrls")

    @field_validator("category", mode="before")
    @classmethod
    def _default_category(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            return QuoteCategory.AUTO
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("phone", "notes", mode="before")
    @classmethod
    def _none_to_blank(cls, v: Any) -> Any:
        return "" if v is None else v


class RenderRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    quote_id: str = Field("", alias="quoteId")
    category: Optional[str] = None
    photo_urls: List[str] = Field(default_factory=list, alias="photoUrls")

    @field_validator("quote_id", mode="before")
    @classmethod
    def _id_as_text(cls, v: Any) -> str:
        # older records use integer ids
        return "" if v is None else str(v).strip()

    @field_validator("photo_urls", mode="before")
    @classmethod
    def _urls_as_text(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, list):
            return [str(u).strip() for u in v if u is not None and str(u).strip()]
        return v


class StatusUpdate(BaseModel):
    status: str

    @field_validator("status")
    @classmethod
    def _known_status(cls, v: str) -> str:
        v = (v or "").strip().lower()
        if v not in QUOTE_STATUSES:
            raise ValueError(f"status must be one of: {', '.join(QUOTE_STATUSES)}")
        return v


class AdminLogin(BaseModel):
    password: str
    next: Optional[str] = None


class UploadResponse(BaseModel):
    url: str
    pathname: str
