"""
Anomaly record models.

An anomaly is one region of interest on an inspection image plus the
provenance of whoever produced it. Records are validated once, when they
enter the service (request body, detector output, or store read), and are
immutable afterwards.

Wire format uses the camelCase keys the frontend and store expect:
    {"id", "box", "class", "confidence", "madeBy"}
"""

import math
from enum import Enum
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class Provenance(str, Enum):
    """Who produced an anomaly. Fixed at creation."""

    AI = "AI"
    USER = "User"

    @classmethod
    def _missing_(cls, value):
        # Older rows store "user"/"ai"
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.strip().lower():
                    return member
        return None


def validate_box(box: List[float]) -> List[float]:
    """
    Validate a canonical [center_x, center_y, width, height] box.

    Raises:
        ValueError: If the box is not four finite numbers with
            non-negative width and height
    """
    if len(box) != 4:
        raise ValueError(f"box must have exactly 4 values, got {len(box)}")
    if not all(math.isfinite(v) for v in box):
        raise ValueError("box values must be finite")
    if box[2] < 0 or box[3] < 0:
        raise ValueError("box width and height must be non-negative")
    return [float(v) for v in box]


_CLASS_ALIASES = AliasChoices("class", "className", "class_name")


class Anomaly(BaseModel):
    """
    A stored anomaly record.

    `box` is always canonical center/size geometry. `confidence` may be
    None for reviewer-drawn anomalies.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    id: str = Field(min_length=1)
    box: List[float]
    class_name: str = Field(
        default="",
        validation_alias=_CLASS_ALIASES,
        serialization_alias="class",
    )
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    made_by: Provenance = Field(default=Provenance.USER, alias="madeBy")

    @field_validator("box")
    @classmethod
    def _check_box(cls, value: List[float]) -> List[float]:
        return validate_box(value)

    @field_validator("class_name", mode="before")
    @classmethod
    def _null_class_is_empty(cls, value):
        return "" if value is None else value

    @field_validator("made_by", mode="before")
    @classmethod
    def _unknown_provenance_is_user(cls, value):
        # Detector rows written before provenance tracking carry no madeBy
        if value is None or (isinstance(value, str) and not value.strip()):
            return Provenance.USER
        return value

    @property
    def center_x(self) -> float:
        return self.box[0]

    @property
    def center_y(self) -> float:
        return self.box[1]

    @property
    def width(self) -> float:
        return self.box[2]

    @property
    def height(self) -> float:
        return self.box[3]

    def to_dict(self) -> dict:
        """Serialize using wire keys."""
        return self.model_dump(mode="json", by_alias=True)


class AnomalyInput(BaseModel):
    """
    Payload for adding an anomaly.

    `id` and `made_by` are optional: the registry generates an id and
    defaults provenance to User when they are missing.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: Optional[str] = None
    box: List[float]
    class_name: str = Field(
        default="",
        validation_alias=_CLASS_ALIASES,
        serialization_alias="class",
    )
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    made_by: Optional[Provenance] = Field(default=None, alias="madeBy")

    @field_validator("box")
    @classmethod
    def _check_box(cls, value: List[float]) -> List[float]:
        return validate_box(value)


class AnomalyPatch(BaseModel):
    """
    Payload for editing an anomaly.

    Only fields present in the payload are applied; each one replaces the
    stored value as a whole. `id` and `madeBy` are accepted so full records
    can be sent back unchanged, but they are never applied.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: Optional[str] = None
    box: Optional[List[float]] = None
    class_name: Optional[str] = Field(
        default=None,
        validation_alias=_CLASS_ALIASES,
        serialization_alias="class",
    )
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    made_by: Optional[Provenance] = Field(default=None, alias="madeBy")

    @field_validator("box")
    @classmethod
    def _check_box(cls, value: Optional[List[float]]) -> List[float]:
        if value is None:
            raise ValueError("box cannot be null")
        return validate_box(value)

    def changes(self) -> dict:
        """Editable fields explicitly supplied by the caller."""
        editable = ("box", "class_name", "confidence")
        changes = {name: getattr(self, name) for name in editable if name in self.model_fields_set}
        if changes.get("class_name", "") is None:
            changes["class_name"] = ""
        return changes
