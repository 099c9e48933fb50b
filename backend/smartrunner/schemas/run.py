from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PathPoint(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    timestamp: int  # epoch ms
    accuracy: Optional[float] = Field(None, ge=0)  # meters


class RunBase(BaseModel):
    # Field aliases follow the client's history format (avgSpeed, createdAt, ...)
    model_config = ConfigDict(populate_by_name=True)

    distance: float = Field(ge=0)  # meters
    duration: float = Field(ge=0)  # seconds
    avg_speed: float = Field(0.0, ge=0, alias="avgSpeed")  # km/h
    max_speed: float = Field(0.0, ge=0, alias="maxSpeed")  # km/h
    calories: int = Field(0, ge=0)
    path: list[PathPoint] = Field(min_length=2)


class RunCreate(RunBase):
    """Schema for storing a finished run. The client may supply its own id."""

    id: Optional[str] = Field(None, alias="_id", max_length=64)
    created_at: Optional[datetime] = Field(None, alias="createdAt")


class RunRead(RunBase):
    """Schema returned to the frontend when reading a run."""

    id: str = Field(alias="_id")
    created_at: datetime = Field(alias="createdAt")
    pace: str  # e.g. "5:12 /km"


class RunStats(BaseModel):
    total_runs: int
    total_distance_m: float
    total_duration_s: float
    total_calories: int
    best_max_speed_kmh: float


class ClearResult(BaseModel):
    deleted: int
