"""
Pydantic models for similarity matching and response data structures.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class MatchResult(BaseModel):
    """A published artwork that looks like the query image."""
    id: str = Field(..., description="ID of the matched artwork")
    title: Optional[str] = Field(None, description="Display title")
    owner: Optional[str] = Field(None, description="Owning user identifier")
    user_id: Optional[str] = Field(None, description="Same as owner, for older clients")
    image_url: Optional[str] = Field(None, description="Display image URL")
    score: float = Field(..., ge=0.0, le=1.0, description="Similarity score (0.0 to 1.0)")
    distance: int = Field(..., ge=0, le=64, description="Hamming distance between fingerprints")


class MatchOutcome(BaseModel):
    """Result of one similarity check."""
    query: Optional[str] = Field(None, description="dHash of the query image")
    matches: List[MatchResult] = Field(default_factory=list)

    @classmethod
    def empty(cls, query: Optional[str] = None) -> "MatchOutcome":
        return cls(query=query, matches=[])


class HashResponse(BaseModel):
    """Response model for the hash endpoint."""
    dhash64: Optional[str] = Field(None, description="64-bit dHash as 16 hex digits")
    sha256: Optional[str] = Field(None, description="SHA-256 of the uploaded bytes")
    note: Optional[str] = Field(None, description="Why hashes are missing")


class VerifyResponse(BaseModel):
    """Response model for the verify endpoint. ``similar`` mirrors ``matches``."""
    query: Optional[str] = Field(None, description="dHash of the query image")
    similar: List[MatchResult] = Field(default_factory=list)
    matches: List[MatchResult] = Field(default_factory=list)

    @classmethod
    def from_outcome(cls, outcome: MatchOutcome) -> "VerifyResponse":
        return cls(query=outcome.query, similar=list(outcome.matches), matches=list(outcome.matches))


class HealthResponse(BaseModel):
    """Health check response model."""
    ok: bool = Field(..., description="Service is accepting requests")
    version: str = Field(..., description="API version")
    components: Dict[str, Any] = Field(default_factory=dict, description="Component health status")
