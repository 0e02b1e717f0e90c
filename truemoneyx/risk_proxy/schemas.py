"""
Request and response schemas for the risk proxy.
"""
from typing import Annotated, List, Optional

from pydantic import BaseModel, Field

ADDRESS_REGEX = r"^0x[a-fA-F0-9]{40}$"

WalletAddress = Annotated[str, Field(pattern=ADDRESS_REGEX)]


class EntityRequest(BaseModel):
    address: WalletAddress


class BulkAnalysisRequest(BaseModel):
    addresses: List[WalletAddress] = Field(..., min_length=1, max_length=100)


class HealthResponse(BaseModel):
    status: str
    timestamp: str


class ErrorResponse(BaseModel):
    error: str
    message: Optional[str] = None
    timestamp: Optional[str] = None
