"""
Record Schemas

Pydantic models for the persisted collection. A Record is keyed by its
stable `id`; two records with the same hex but different ids are dupes,
never merged.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from dye_analyzer.schemas.match import ColorSource, MatchCandidate


class Location(BaseModel):
    """Integer block coordinate where an item was observed"""

    x: int
    y: int
    z: int

    def __str__(self) -> str:
        return f"{self.x}, {self.y}, {self.z}"


class MatchSnapshot(BaseModel):
    """Frozen copy of a MatchCandidate stored on a Record"""

    name: str = Field(..., description="Catalog color name")
    target_hex: str = Field(..., description="Catalog hex")
    delta_e: float = Field(..., description="CIE76 ΔE", ge=0.0)
    absolute_distance: int = Field(..., description="RGB Manhattan distance", ge=0, le=765)
    tier: int = Field(..., ge=0, le=3)
    is_custom: bool = False
    is_fade: bool = False

    @classmethod
    def from_candidate(cls, candidate: MatchCandidate) -> "MatchSnapshot":
        return cls(
            name=candidate.name,
            target_hex=candidate.target_hex,
            delta_e=candidate.delta_e,
            absolute_distance=candidate.absolute_distance,
            tier=candidate.tier,
            is_custom=candidate.source is ColorSource.CUSTOM,
            is_fade=candidate.source is ColorSource.FADE,
        )


class Record(BaseModel):
    """Classified item, the unit persisted by RecordStore"""

    id: str = Field(..., description="Stable item identifier")
    display_name: str = Field(..., description="Item name with formatting removed")
    hex: str = Field(..., description="Item color, 6 uppercase hex digits")
    location: Optional[Location] = Field(None, description="Where the item was observed")
    best_match: Optional[MatchSnapshot] = None
    top3: Optional[List[MatchSnapshot]] = Field(None, max_length=3)
    word_match: Optional[str] = None
    special_pattern: Optional[str] = None
    observed_at: datetime = Field(default_factory=datetime.now)

    @field_validator("hex")
    @classmethod
    def normalize_hex(cls, v: str) -> str:
        return v.replace("#", "").strip().upper()

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "3f1c2a9e-5b7d-4c1e-9a0b-2d6e8f4a1c3b",
                "display_name": "Velvet Top Hat",
                "hex": "FF0000",
                "location": {"x": 10, "y": 64, "z": -3},
                "best_match": {
                    "name": "Ruby",
                    "target_hex": "FF0000",
                    "delta_e": 0.0,
                    "absolute_distance": 0,
                    "tier": 0,
                },
                "word_match": None,
                "special_pattern": "paired",
            }
        }
    )
