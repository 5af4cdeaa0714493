from typing import Any

from pydantic import BaseModel, Field


class User(BaseModel):
    id: str
    full_name: str | None = None
    location: str | None = None
    thread_id: str | None = None
    preferences: Any = None  # raw persisted document, normalized on load
    created_at: str = ""


class GearItem(BaseModel):
    id: str
    user_id: str
    name: str
    category: str = "Other"
    weight_grams: int | None = None
    temp_rating: int | None = None
    condition: str = "good"
    created_at: str = ""


class Trip(BaseModel):
    id: str
    organizer_id: str
    name: str
    location: str = ""
    start_date: str
    end_date: str
    type: str = "DAY_HIKE"
    difficulty: str = "MODERATE"
    distance: float | None = None
    elevation_gain: float | None = None
    description: str = ""
    external_url: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    created_at: str = ""


class ChatRequest(BaseModel):
    user_id: str
    message: str = Field(min_length=1)


class QuickAction(BaseModel):
    label: str
    value: str


class ChatReply(BaseModel):
    role: str = "assistant"
    message: str
    is_json: bool = False
    data: Any = None
    quick_actions: list[QuickAction] = Field(default_factory=list)


class CreateUserRequest(BaseModel):
    id: str | None = None
    full_name: str | None = None
    location: str | None = None


class CreateGearRequest(BaseModel):
    name: str
    category: str = "Other"
    weight_grams: int | None = None
    temp_rating: int | None = None
    condition: str = "good"


class ResetThreadResponse(BaseModel):
    user_id: str
    cleared: bool


class HealthChecks(BaseModel):
    backend: bool
    database: bool


class HealthResponse(BaseModel):
    status: str
    checks: HealthChecks
