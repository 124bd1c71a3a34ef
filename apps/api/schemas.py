from pydantic import BaseModel, ConfigDict, Field, field_validator
from uuid import UUID
from typing import Optional, List, Dict, Literal


class ForecastSlotIn(BaseModel):
    """One scraped slot. Times are epoch milliseconds."""
    timestamp: int
    speed: float  # knots
    gust: float  # knots
    direction: float  # degrees, "from"
    wave_height: Optional[float] = None  # meters
    wave_period: Optional[float] = None  # seconds
    wave_direction: Optional[float] = None
    tide_height: Optional[float] = None
    tide_type: Optional[str] = None
    tide_time: Optional[int] = None


class ScrapeCreate(BaseModel):
    scrape_timestamp: int
    slots: List[ForecastSlotIn]


class ScrapeResult(BaseModel):
    scrape_id: UUID
    is_successful: bool
    error_message: Optional[str] = None
    slots_count: int


class TideEventIn(BaseModel):
    time: int
    type: Literal["high", "low"]
    height: float


class TideReplace(BaseModel):
    events: List[TideEventIn]


class TideReplaceResult(BaseModel):
    spot_id: UUID
    stored: int


class ConditionScoreResponse(BaseModel):
    id: UUID
    slot_id: UUID
    spot_id: UUID
    timestamp: int
    sport: str
    user_id: Optional[str] = None
    score: int
    reasoning: str
    factors: Optional[Dict[str, float]] = None
    model: str
    scored_at: int

    model_config = ConfigDict(from_attributes=True)


class ScoringLogResponse(BaseModel):
    id: UUID
    score_id: UUID
    slot_id: UUID
    spot_id: UUID
    sport: str
    user_id: Optional[str] = None
    timestamp: int
    system_prompt: str
    user_prompt: str
    model: str
    temperature: float
    max_tokens: int
    raw_response: str
    scored_at: int
    duration_ms: Optional[int] = None
    attempt: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class TideInfo(BaseModel):
    is_exact_time: bool
    time: Optional[int] = None
    type: Optional[str] = None
    height: Optional[float] = None
    time_str: Optional[str] = None
    is_rising: Optional[bool] = None
    is_falling: Optional[bool] = None


class SlotScore(BaseModel):
    id: UUID
    score: int
    reasoning: str
    factors: Optional[Dict[str, float]] = None
    model: str
    scored_at: int
    is_personalized: bool


class ForecastSlotView(ForecastSlotIn):
    id: UUID
    scrape_timestamp: int
    is_daylight: bool
    matches_criteria: bool
    is_epic: bool
    is_ideal: bool
    tide: Optional[TideInfo] = None
    score: Optional[SlotScore] = None


class ForecastResponse(BaseModel):
    spot_id: UUID
    spot_name: str
    sport: str
    timezone: str
    slots: List[ForecastSlotView]


class UnscoredScoringRequest(BaseModel):
    """Backfill filter. Empty fields mean "all"."""
    spot_ids: Optional[List[UUID]] = None
    sports: Optional[List[str]] = None
    start: Optional[int] = Field(default=None, description="Earliest slot timestamp, epoch ms")
    end: Optional[int] = Field(default=None, description="Latest slot timestamp, epoch ms")

    @field_validator("sports")
    @classmethod
    def lowercase_sports(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return [s.lower() for s in v] if v else v


class UnscoredScoringQueued(BaseModel):
    task_id: str
    status: str = "queued"
