"""
Scoring prompt layering and construction.

System text is built from three layers plus an optional darkness caveat:
1. sport guidelines (SystemSportPrompt, else the default text for the sport)
2. spot characteristics (ScoringPrompt for the user, else the spot default)
3. temporal-trend instructions (same ScoringPrompt row, else the default)

The user turn carries the slot being scored plus a few anchor points from the
surrounding 72h-back / 12h-forward window so the model can judge trends.
"""
from dataclasses import dataclass, field as dc_field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence
from uuid import UUID
from zoneinfo import ZoneInfo
import logging

from sqlalchemy.orm import Session

from core.exceptions import MissingPromptConfigurationError
from services.criteria import field
from services.sun import SunTimes

logger = logging.getLogger(__name__)

HOUR_MS = 60 * 60 * 1000
HISTORY_ANCHOR_HOURS = (72, 48, 24, 12)
FUTURE_ANCHOR_HOURS = 12
ANCHOR_TOLERANCE_MS = 2 * HOUR_MS
CONTEXT_BEFORE_MS = 72 * HOUR_MS
CONTEXT_AFTER_MS = 12 * HOUR_MS

FACTOR_KEYS = ("windQuality", "waveQuality", "tideQuality", "overallConditions")

_SCORE_SCALE = """Score 0-100:
- 90-100: Excellent conditions, rare day
- 75-89: Very good conditions, well worth it
- 60-74: Decent conditions, enjoyable session
- 40-59: Mediocre, rideable but nothing special
- 0-39: Poor conditions, best to skip

Write concise reasoning in a casual but informative tone. Be direct and practical. Avoid excessive slang or hype."""

DEFAULT_SPORT_GUIDELINES: Dict[str, str] = {
    "wingfoil": f"""You are an expert wingfoiler evaluating conditions. Consider:
- Wind speed: 15-25 knots is ideal, but steady wind beats strong gusts
- Gust factor: Clean, consistent wind is much better than gusty conditions
- Wind direction: Cross-onshore or side-shore is ideal for most spots
- Overall: Safety, ride quality, and session enjoyment

{_SCORE_SCALE}""",
    "kitesurfing": f"""You are an expert kitesurfer evaluating conditions. Consider:
- Wind speed: 14-28 knots is ideal, but steady wind beats strong gusts
- Gust factor: Gusty wind is dangerous on a kite, consistency matters most
- Wind direction: Side-shore or side-onshore; offshore wind is unsafe
- Overall: Safety, ride quality, and session enjoyment

{_SCORE_SCALE}""",
    "surfing": """You are an experienced surfer evaluating conditions. Consider:
- Wave height: Right size for the spot - not too small, not too big
- Wave period: Longer periods (12+ sec) mean cleaner, more powerful waves
- Wave direction: Offshore or light onshore keeps things clean
- Tide: Depends on the spot - some work on low, others need high
- Overall: Wave quality, consistency, and session enjoyment

Score 0-100:
- 90-100: Excellent conditions, rare day
- 75-89: Very good waves, well worth it
- 60-74: Decent conditions, enjoyable session
- 40-59: Mediocre, waves are there but nothing special
- 0-39: Flat or messy, best to skip

Write concise reasoning in a casual but informative tone. Be direct and practical. Avoid excessive slang or hype.""",
}

DEFAULT_TEMPORAL_PROMPT = """Consider trends in conditions 72 hours before and 12 hours after the current time slot.
- Improving conditions (getting better) should score higher
- Deteriorating conditions (getting worse) should score lower
- Consistent conditions indicate stability and reliability
- Rapid changes may indicate unstable weather patterns"""

CARDINALS = (
    "N", "NNE", "NE", "ENE", "E", "ESE", "SE", "SSE",
    "S", "SSW", "SW", "WSW", "W", "WNW", "NW", "NNW",
)


@dataclass(frozen=True)
class PromptDefaults:
    """Fallback texts used when no active configuration row exists."""
    sport_guidelines: Mapping[str, str] = dc_field(default_factory=lambda: dict(DEFAULT_SPORT_GUIDELINES))
    temporal_prompt: str = DEFAULT_TEMPORAL_PROMPT


@dataclass(frozen=True)
class ResolvedPrompts:
    system_prompt: str
    spot_prompt: str
    temporal_prompt: str
    system_sport_prompt_id: Optional[UUID] = None
    scoring_prompt_id: Optional[UUID] = None


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------

def cardinal_direction(degrees: float) -> str:
    """16-point compass name for a meteorological "from" direction."""
    normalized = ((degrees % 360) + 360) % 360
    return CARDINALS[int(round(normalized / 22.5)) % 16]


def _num(value: Any) -> str:
    return f"{value:g}" if isinstance(value, (int, float)) else str(value)


def format_slot_data(slot: Any, tz: Optional[ZoneInfo] = None) -> str:
    """One line describing a slot's conditions."""
    when = datetime.fromtimestamp(field(slot, "timestamp") / 1000.0, tz=timezone.utc)
    if tz is not None:
        when = when.astimezone(tz)
    direction = field(slot, "direction", 0)

    data = (
        f"{when.strftime('%Y-%m-%d %H:%M')} - Wind: {_num(field(slot, 'speed', 0))} knots "
        f"from {cardinal_direction(direction)} ({_num(direction)}°), "
        f"Gust: {_num(field(slot, 'gust', 0))} knots"
    )

    if field(slot, "wave_height") is not None:
        data += f", Waves: {_num(field(slot, 'wave_height'))}m"
    if field(slot, "wave_period") is not None:
        data += f", Period: {_num(field(slot, 'wave_period'))}s"
    if field(slot, "wave_direction") is not None:
        wave_direction = field(slot, "wave_direction")
        data += f", Wave Dir: {cardinal_direction(wave_direction)} ({_num(wave_direction)}°)"
    if field(slot, "tide_type"):
        data += f", Tide: {field(slot, 'tide_type')}"
    if field(slot, "tide_height") is not None:
        data += f" ({_num(field(slot, 'tide_height'))}m)"

    return data


def _closest(slots: Sequence[Any], target_ms: int) -> Optional[Any]:
    best = None
    for slot in slots:
        if best is None or abs(field(slot, "timestamp") - target_ms) < abs(field(best, "timestamp") - target_ms):
            best = slot
    return best


def _contextual_note(current_ms: int, sun_times: SunTimes, tz: Optional[ZoneInfo]) -> str:
    def _clock(dt: datetime) -> str:
        return (dt.astimezone(tz) if tz else dt).strftime("%H:%M")

    if sun_times.sunrise_ms is not None and current_ms < sun_times.sunrise_ms:
        return (
            f"\n\nIMPORTANT: This time slot is BEFORE sunrise ({_clock(sun_times.sunrise)}). "
            "Conditions are in darkness and not suitable for watersports. "
            "Lower the score accordingly. This is shown for temporal context only."
        )
    if sun_times.sunset_ms is not None and current_ms > sun_times.sunset_ms:
        return (
            f"\n\nIMPORTANT: This time slot is AFTER sunset ({_clock(sun_times.sunset)}). "
            "Conditions are in darkness and not suitable for watersports. "
            "Lower the score accordingly. This is shown for temporal context only."
        )
    return ""


def build_prompt(
    system_prompt: str,
    spot_prompt: str,
    temporal_prompt: str,
    current_slot: Any,
    time_series_context: Sequence[Any],
    spot_name: str,
    sun_times: Optional[SunTimes] = None,
    is_contextual: bool = False,
    tz: Optional[ZoneInfo] = None,
) -> Dict[str, str]:
    """
    Compose the system and user turns for one (slot, sport) evaluation.

    Returns {"system": ..., "user": ...}. An empty context yields a user turn
    with only the Current line and the output instructions.
    """
    current_ms = field(current_slot, "timestamp")

    contextual_note = ""
    if is_contextual and sun_times is not None:
        contextual_note = _contextual_note(current_ms, sun_times, tz)

    system = f"{system_prompt}\n\nSpot: {spot_name}\n{spot_prompt}\n\n{temporal_prompt}{contextual_note}"

    lines: List[str] = ["Evaluate these conditions:", "", f"Current: {format_slot_data(current_slot, tz)}", ""]

    before = [s for s in time_series_context if field(s, "timestamp") < current_ms]
    after = [s for s in time_series_context if field(s, "timestamp") > current_ms]

    if before:
        lines.append("Historical context (72h before):")
        for hours in HISTORY_ANCHOR_HOURS:
            target = current_ms - hours * HOUR_MS
            closest = _closest(before, target)
            if closest is not None and abs(field(closest, "timestamp") - target) < ANCHOR_TOLERANCE_MS:
                hours_ago = round((current_ms - field(closest, "timestamp")) / HOUR_MS)
                lines.append(f"{hours_ago}h ago: {format_slot_data(closest, tz)}")
        lines.append("")

    if after:
        lines.append("Future context (12h after):")
        target = current_ms + FUTURE_ANCHOR_HOURS * HOUR_MS
        closest = _closest(after, target)
        if closest is not None and abs(field(closest, "timestamp") - target) < ANCHOR_TOLERANCE_MS:
            hours_ahead = round((field(closest, "timestamp") - current_ms) / HOUR_MS)
            lines.append(f"{hours_ahead}h ahead: {format_slot_data(closest, tz)}")
        lines.append("")

    lines.append("Provide a JSON response with:")
    lines.append("- score: integer 0-100")
    lines.append("- reasoning: brief, practical explanation (1-2 sentences, max 200 chars)")
    lines.append(f"- factors: optional object with {', '.join(FACTOR_KEYS)} (each 0-100 number)")

    return {"system": system, "user": "\n".join(lines)}


# ---------------------------------------------------------------------------
# Layer resolution
# ---------------------------------------------------------------------------

class PromptBuilder:
    """Resolves configured prompt layers against a set of defaults and builds prompts."""

    def __init__(self, defaults: Optional[PromptDefaults] = None):
        self.defaults = defaults or PromptDefaults()

    def resolve(self, db: Session, spot_id: UUID, sport: str, user_id: Optional[str] = None) -> ResolvedPrompts:
        """
        Pick the active text for each layer.

        Raises MissingPromptConfigurationError when the sport has neither an
        active guideline row nor default guideline text.
        """
        from models import ScoringPrompt, SystemSportPrompt

        system_row = (
            db.query(SystemSportPrompt)
            .filter(SystemSportPrompt.sport == sport, SystemSportPrompt.is_active.is_(True))
            .first()
        )
        system_text = system_row.prompt if system_row and system_row.prompt else self.defaults.sport_guidelines.get(sport)
        if not system_text:
            raise MissingPromptConfigurationError(f"No active system prompt for sport {sport!r}")

        spot_row = None
        if user_id is not None:
            spot_row = (
                db.query(ScoringPrompt)
                .filter(
                    ScoringPrompt.spot_id == spot_id,
                    ScoringPrompt.sport == sport,
                    ScoringPrompt.user_id == user_id,
                    ScoringPrompt.is_active.is_(True),
                )
                .order_by(ScoringPrompt.updated_at.desc())
                .first()
            )
        if spot_row is None:
            spot_row = (
                db.query(ScoringPrompt)
                .filter(
                    ScoringPrompt.spot_id == spot_id,
                    ScoringPrompt.sport == sport,
                    ScoringPrompt.user_id.is_(None),
                    ScoringPrompt.is_active.is_(True),
                )
                .order_by(ScoringPrompt.updated_at.desc())
                .first()
            )

        return ResolvedPrompts(
            system_prompt=system_text,
            spot_prompt=(spot_row.spot_prompt if spot_row else "") or "",
            temporal_prompt=(spot_row.temporal_prompt if spot_row else "") or self.defaults.temporal_prompt,
            system_sport_prompt_id=system_row.id if system_row and system_row.prompt else None,
            scoring_prompt_id=spot_row.id if spot_row else None,
        )

    def build(
        self,
        prompts: ResolvedPrompts,
        current_slot: Any,
        time_series_context: Sequence[Any],
        spot_name: str,
        sun_times: Optional[SunTimes] = None,
        is_contextual: bool = False,
        tz: Optional[ZoneInfo] = None,
    ) -> Dict[str, str]:
        return build_prompt(
            prompts.system_prompt,
            prompts.spot_prompt,
            prompts.temporal_prompt,
            current_slot,
            time_series_context,
            spot_name,
            sun_times=sun_times,
            is_contextual=is_contextual,
            tz=tz,
        )


# ---------------------------------------------------------------------------
# Seeding
# ---------------------------------------------------------------------------

def seed_system_sport_prompts(db: Session, defaults: Optional[PromptDefaults] = None) -> Dict[str, int]:
    """Upsert the default guideline text for every sport. Caller commits."""
    from models import SystemSportPrompt, now_ms

    defaults = defaults or PromptDefaults()
    created = updated = 0
    now = now_ms()
    for sport, prompt in defaults.sport_guidelines.items():
        existing = db.query(SystemSportPrompt).filter(SystemSportPrompt.sport == sport).first()
        if existing:
            existing.prompt = prompt
            existing.is_active = True
            existing.updated_at = now
            updated += 1
        else:
            db.add(SystemSportPrompt(sport=sport, prompt=prompt, is_active=True, created_at=now, updated_at=now))
            created += 1
    db.flush()
    logger.info(f"Seeded system sport prompts: {created} created, {updated} updated")
    return {"created": created, "updated": updated, "total": created + updated}


def seed_scoring_prompts(db: Session, defaults: Optional[PromptDefaults] = None) -> Dict[str, int]:
    """
    Upsert the system (user_id NULL) spot+sport layer for every spot.

    Spot text is generated from the spot's criteria config. Caller commits.
    """
    from models import ScoringPrompt, Spot, SpotConfig, now_ms
    from services.sports import get_sport

    defaults = defaults or PromptDefaults()
    created = updated = 0
    now = now_ms()
    for spot in db.query(Spot).all():
        for sport in (spot.sports or ["wingfoil"]):
            config = (
                db.query(SpotConfig)
                .filter(SpotConfig.spot_id == spot.id, SpotConfig.sport == sport)
                .first()
            )
            spot_prompt = get_sport(sport).describe_spot(spot.name, config)
            existing = (
                db.query(ScoringPrompt)
                .filter(
                    ScoringPrompt.spot_id == spot.id,
                    ScoringPrompt.sport == sport,
                    ScoringPrompt.user_id.is_(None),
                )
                .first()
            )
            if existing:
                existing.spot_prompt = spot_prompt
                existing.temporal_prompt = defaults.temporal_prompt
                existing.is_active = True
                existing.updated_at = now
                updated += 1
            else:
                db.add(ScoringPrompt(
                    spot_id=spot.id,
                    sport=sport,
                    user_id=None,
                    spot_prompt=spot_prompt,
                    temporal_prompt=defaults.temporal_prompt,
                    is_active=True,
                    created_at=now,
                    updated_at=now,
                ))
                created += 1
    db.flush()
    logger.info(f"Seeded scoring prompts: {created} created, {updated} updated")
    return {"created": created, "updated": updated, "total": created + updated}
