"""
Pydantic models for the published artwork catalog.
"""

from typing import Optional

from pydantic import BaseModel, Field


class CatalogEntry(BaseModel):
    """One published artwork as read from the catalog."""
    id: str = Field(..., description="Artwork identifier")
    title: Optional[str] = Field(None, description="Display title")
    owner: Optional[str] = Field(None, description="Owning user identifier")
    image_url: Optional[str] = Field(None, description="Display image URL")
    dhash64: Optional[str] = Field(None, description="Stored 64-bit dHash fingerprint")

    @classmethod
    def from_row(cls, row: dict) -> "CatalogEntry":
        """Build an entry from an ``artworks`` row."""
        return cls(
            id=str(row["id"]),
            title=row.get("title"),
            owner=str(row["owner"]) if row.get("owner") is not None else None,
            image_url=row.get("cover_url"),
            dhash64=row.get("dhash64"),
        )
