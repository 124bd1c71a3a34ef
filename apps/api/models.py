from sqlalchemy import Column, BigInteger, Boolean, Float, DateTime, ForeignKey, Integer, JSON, Text, String, Index, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from core.database import Base
import uuid
import time


# JSONB on Postgres, plain JSON elsewhere (SQLite in tests).
JSONType = JSON().with_variant(JSONB(), "postgresql")


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


class Spot(Base):
    __tablename__ = "spot"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    name = Column(Text, nullable=False)
    url = Column(Text, nullable=True)
    country = Column(Text, nullable=True)
    windy_spot_id = Column(Text, nullable=True)

    # Coordinates drive sunrise/sunset. Spots without them fall back to a
    # fixed local-clock daylight window and get no contextual slots.
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    timezone = Column(Text, nullable=True)  # IANA name, e.g. "Europe/Lisbon"

    # Ordered list of sport tags, e.g. ["wingfoil", "surfing"]
    sports = Column(JSONType, nullable=False, default=list)

    # --- presentation metadata (not used by the scoring core) ---
    webcam_url = Column(Text, nullable=True)
    webcam_stream_source = Column(Text, nullable=True)
    live_report_url = Column(Text, nullable=True)

    configs = relationship("SpotConfig", back_populates="spot", cascade="all, delete-orphan")

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class SpotConfig(Base):
    """Sport-specific minimum conditions for a spot."""
    __tablename__ = "spot_config"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    spot_id = Column(Uuid(as_uuid=True), ForeignKey("spot.id"), nullable=False, index=True)
    sport = Column(Text, nullable=False)

    # Wind sports
    min_speed = Column(Float, nullable=True)
    min_gust = Column(Float, nullable=True)
    direction_from = Column(Float, nullable=True)  # degrees 0-360
    direction_to = Column(Float, nullable=True)

    # Surfing
    min_swell_height = Column(Float, nullable=True)
    max_swell_height = Column(Float, nullable=True)
    swell_direction_from = Column(Float, nullable=True)
    swell_direction_to = Column(Float, nullable=True)
    min_period = Column(Float, nullable=True)
    optimal_tide = Column(Text, nullable=True)  # 'high' | 'low' | 'both'

    spot = relationship("Spot", back_populates="configs")

    __table_args__ = (
        Index("ix_spot_config_spot_sport", "spot_id", "sport", unique=True),
    )


class Scrape(Base):
    """One forecast ingestion run for a spot."""
    __tablename__ = "scrape"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    spot_id = Column(Uuid(as_uuid=True), ForeignKey("spot.id"), nullable=False)
    scrape_timestamp = Column(BigInteger, nullable=False)  # epoch ms
    is_successful = Column(Boolean, nullable=False)
    slots_count = Column(Integer, nullable=False)
    error_message = Column(Text, nullable=True)

    __table_args__ = (
        Index("ix_scrape_spot_timestamp", "spot_id", "scrape_timestamp"),
    )


class ForecastSlot(Base):
    """
    One forecast time bucket from one scrape generation.

    Immutable once written. Ids change every scrape; `timestamp` is the
    durable identity of a time-of-day across generations.
    """
    __tablename__ = "forecast_slot"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    spot_id = Column(Uuid(as_uuid=True), ForeignKey("spot.id"), nullable=False)
    scrape_timestamp = Column(BigInteger, nullable=False)  # epoch ms
    timestamp = Column(BigInteger, nullable=False)  # slot start, epoch ms

    speed = Column(Float, nullable=False)  # knots
    gust = Column(Float, nullable=False)  # knots
    direction = Column(Float, nullable=False)  # degrees, "from"

    wave_height = Column(Float, nullable=True)  # meters
    wave_period = Column(Float, nullable=True)  # seconds
    wave_direction = Column(Float, nullable=True)

    # Optional per-slot tide annotation supplied by some scrapers
    tide_height = Column(Float, nullable=True)
    tide_type = Column(Text, nullable=True)
    tide_time = Column(BigInteger, nullable=True)

    __table_args__ = (
        Index("ix_forecast_slot_spot_timestamp", "spot_id", "timestamp"),
        Index("ix_forecast_slot_spot_scrape", "spot_id", "scrape_timestamp"),
    )


class TideEvent(Base):
    """A high/low tide extremum. The whole set is replaced per spot on ingestion."""
    __tablename__ = "tide_event"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    spot_id = Column(Uuid(as_uuid=True), ForeignKey("spot.id"), nullable=False)
    time = Column(BigInteger, nullable=False)  # epoch ms
    type = Column(Text, nullable=False)  # 'high' | 'low'
    height = Column(Float, nullable=False)  # meters

    __table_args__ = (
        Index("ix_tide_event_spot_time", "spot_id", "time"),
    )


class SystemSportPrompt(Base):
    """Sport-level evaluation guidelines shared by every spot."""
    __tablename__ = "system_sport_prompt"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    sport = Column(Text, nullable=False, unique=True)
    prompt = Column(Text, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(BigInteger, nullable=False, default=now_ms)
    updated_at = Column(BigInteger, nullable=False, default=now_ms)


class ScoringPrompt(Base):
    """
    Spot+sport prompt layer.

    user_id NULL is the system default for the spot; a row with user_id set is
    that user's personalized layer and takes priority while active.
    """
    __tablename__ = "scoring_prompt"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    spot_id = Column(Uuid(as_uuid=True), ForeignKey("spot.id"), nullable=False)
    sport = Column(Text, nullable=False)
    user_id = Column(String, nullable=True)
    spot_prompt = Column(Text, nullable=False, default="")
    temporal_prompt = Column(Text, nullable=False, default="")
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(BigInteger, nullable=False, default=now_ms)
    updated_at = Column(BigInteger, nullable=False, default=now_ms)

    __table_args__ = (
        Index("ix_scoring_prompt_spot_sport_user", "spot_id", "sport", "user_id"),
    )


class ConditionScore(Base):
    """
    Quality score for a (slot, sport, user-or-system).

    At most one live system score (user_id NULL) per (slot_id, sport), enforced
    by a partial unique index. Personalized rows coexist with it.
    """
    __tablename__ = "condition_score"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    slot_id = Column(Uuid(as_uuid=True), ForeignKey("forecast_slot.id"), nullable=False)
    spot_id = Column(Uuid(as_uuid=True), ForeignKey("spot.id"), nullable=False)
    timestamp = Column(BigInteger, nullable=False)  # slot start, the cross-generation join key
    sport = Column(Text, nullable=False)
    user_id = Column(String, nullable=True)
    score = Column(Integer, nullable=False)  # 0-100
    reasoning = Column(Text, nullable=False)
    factors = Column(JSONType, nullable=True)
    model = Column(Text, nullable=False)
    scored_at = Column(BigInteger, nullable=False)
    created_at = Column(BigInteger, nullable=False, default=now_ms)

    __table_args__ = (
        Index("ix_condition_score_spot_sport_timestamp", "spot_id", "sport", "timestamp"),
        Index("ix_condition_score_slot_sport_user", "slot_id", "sport", "user_id"),
        Index(
            "uq_condition_score_live_system",
            "slot_id",
            "sport",
            unique=True,
            postgresql_where=user_id.is_(None),
            sqlite_where=user_id.is_(None),
        ),
    )


class ScoreHistory(Base):
    """Write-once archive of a superseded system score."""
    __tablename__ = "score_history"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    score_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    slot_id = Column(Uuid(as_uuid=True), nullable=False)
    spot_id = Column(Uuid(as_uuid=True), nullable=False)
    timestamp = Column(BigInteger, nullable=False)
    sport = Column(Text, nullable=False)
    score = Column(Integer, nullable=False)
    reasoning = Column(Text, nullable=False)
    factors = Column(JSONType, nullable=True)
    model = Column(Text, nullable=False)
    scored_at = Column(BigInteger, nullable=False)

    # Prompt layers that were being applied when this row was replaced
    system_sport_prompt_id = Column(Uuid(as_uuid=True), nullable=True)
    scoring_prompt_id = Column(Uuid(as_uuid=True), nullable=True)
    system_prompt = Column(Text, nullable=True)
    spot_prompt = Column(Text, nullable=True)
    temporal_prompt = Column(Text, nullable=True)

    replaced_at = Column(BigInteger, nullable=False)


class ScoringLog(Base):
    """Provenance for one successful model call."""
    __tablename__ = "scoring_log"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    score_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    slot_id = Column(Uuid(as_uuid=True), nullable=False)
    spot_id = Column(Uuid(as_uuid=True), nullable=False)
    sport = Column(Text, nullable=False)
    user_id = Column(String, nullable=True)
    timestamp = Column(BigInteger, nullable=False)  # slot start
    system_prompt = Column(Text, nullable=False)
    user_prompt = Column(Text, nullable=False)
    model = Column(Text, nullable=False)
    temperature = Column(Float, nullable=False)
    max_tokens = Column(Integer, nullable=False)
    raw_response = Column(Text, nullable=False)
    scored_at = Column(BigInteger, nullable=False)
    duration_ms = Column(Integer, nullable=True)
    attempt = Column(Integer, nullable=True)
