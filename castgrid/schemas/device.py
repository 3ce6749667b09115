from pydantic import BaseModel, ConfigDict, Field, field_validator

from castgrid.models.grid import MAX_GRID_POSITIONS


class DeviceRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    device_id: str = Field(alias="deviceId")
    location: str = ""
    grids: list[str] = Field(default_factory=list)

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class GridRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    grid_id: str = Field(alias="gridId")
    device_id: str = Field(alias="deviceId")
    position: int = Field(default=1, ge=1, le=MAX_GRID_POSITIONS)
    media_box_id: str = Field(default="", alias="mediaBoxId")

    @field_validator("media_box_id", mode="before")
    @classmethod
    def _empty_box(cls, value):
        return (value or "").strip()

    @classmethod
    def from_row(cls, row) -> "GridRecord":
        return cls(
            grid_id=row.id,
            device_id=row.device_id,
            position=row.position,
            media_box_id=row.media_box_id or "",
        )

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


def default_grid_id(device_id: str, position: int) -> str:
    return f"{device_id}_grid_{position}"


class DeviceRegisterIn(BaseModel):
    device_id: str = Field(..., min_length=1, alias="deviceId")
    location: str = ""
    grid_count: int = Field(default=1, ge=1, le=MAX_GRID_POSITIONS, alias="gridCount")

    model_config = ConfigDict(populate_by_name=True)
