#!/usr/bin/env python3
"""
Data Models for the PermitInfo Plate Automation Service

Pydantic models for permits and plates scraped from the portal, the
progress events streamed to the browser, and the request/response bodies
of the HTTP API. Attribute names are snake_case; the wire format uses the
camelCase aliases.
"""

import base64
import json
from typing import Optional

from pydantic import BaseModel, Field

ACTIVE_STATUS = "Active"


# =============================================================================
# Permit Models
# =============================================================================


class Plate(BaseModel):
    """A vehicle plate that can be assigned to a permit."""
    plate: str = Field(default="", alias="plate")
    name: str = Field(default="", alias="name")

    class Config:
        populate_by_name = True


class Permit(BaseModel):
    """One row of the portal dashboard."""
    permit_no: str = Field(default="", alias="permitNo")
    status: str = Field(default="", alias="status")
    description: str = Field(default="", alias="description")
    valid_from: str = Field(default="", alias="validFrom")
    valid_to: str = Field(default="", alias="validTo")
    holder: str = Field(default="", alias="holder")
    vehicle: str = Field(default="", alias="vehicle")
    detail_page_url: Optional[str] = Field(default=None, alias="detailPageUrl")
    available_plates: list[Plate] = Field(default_factory=list, alias="availablePlates")

    class Config:
        populate_by_name = True

    @property
    def is_active(self) -> bool:
        return self.status == ACTIVE_STATUS

    @property
    def can_enrich(self) -> bool:
        """Only active permits with a detail page carry assignable plates."""
        return self.is_active and bool(self.detail_page_url)


# =============================================================================
# Progress Models
# =============================================================================


class ProgressEvent(BaseModel):
    """A human-readable progress line, optionally with a PNG snapshot."""
    log: str
    image_snapshot: Optional[bytes] = Field(default=None, alias="imageSnapshot")

    class Config:
        populate_by_name = True

    def to_sse(self) -> str:
        """Encode as Server-Sent Events text."""
        chunk = f"data: {json.dumps({'log': self.log})}\n\n"
        if self.image_snapshot:
            encoded = base64.b64encode(self.image_snapshot).decode("ascii")
            chunk += f"event: screenshot\ndata: {encoded}\n\n"
        return chunk


# =============================================================================
# API Models
# =============================================================================


class PlateUpdateRequest(BaseModel):
    """Body of POST /update-plate."""
    detail_page_url: str = Field(alias="detailPageUrl")
    current_plate: str = Field(default="", alias="currentPlate")
    plate_to_activate: str = Field(alias="plateToActivate")

    class Config:
        populate_by_name = True


class PlateUpdateResponse(BaseModel):
    """Result of a plate update."""
    success: bool
    redirect_url: Optional[str] = Field(default=None, alias="redirectUrl")
    message: Optional[str] = None

    class Config:
        populate_by_name = True

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class LoginProbeResult(BaseModel):
    """Outcome of an HTTP-only login postback."""
    status: int
    location: Optional[str] = None
    redirected: bool = False
    cookies: list[str] = Field(default_factory=list)
