from pydantic import BaseModel, ConfigDict, Field, field_validator

from stockledger.models.location import LocationKind


class LocationIn(BaseModel):
    code: str = Field(..., min_length=1, max_length=30)
    name: str = Field(..., min_length=1, max_length=120)
    kind: LocationKind
    default_capacity: int | None = Field(default=None, gt=0)
    default_min_threshold: int = Field(default=0, ge=0)

    @field_validator("code")
    @classmethod
    def normalize_code(cls, value: str) -> str:
        cleaned = value.strip().upper()
        if not cleaned:
            raise ValueError("code cannot be blank")
        return cleaned


class LocationOut(BaseModel):
    id: str
    code: str
    name: str
    kind: LocationKind
    is_active: bool
    default_capacity: int | None = None
    default_min_threshold: int

    model_config = ConfigDict(from_attributes=True)
