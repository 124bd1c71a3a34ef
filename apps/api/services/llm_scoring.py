"""
LLM condition scoring.

Scores one (slot, sport[, user]) pair: resolve prompt layers, build the
prompt from the slot and its 72h-back / 12h-forward neighbours, call the model
with a bounded retry schedule, validate the JSON answer, then persist the
score and a provenance log. Nothing is written when every attempt fails.
"""
import json
import logging
import math
import re
import time
from typing import Any, Callable, Dict, List, Optional, Sequence
from uuid import UUID

from openai import OpenAI
from sqlalchemy.orm import Session

from core.config import settings
from core.exceptions import MissingPromptConfigurationError, ScoringResponseError
from core.logging import scoring_fields
from models import ForecastSlot, ScoringLog, Spot, now_ms
from services.condition_scores import save_condition_score
from services.daylight import spot_timezone, sun_times_for
from services.scoring_prompts import CONTEXT_AFTER_MS, CONTEXT_BEFORE_MS, PromptBuilder

logger = logging.getLogger(__name__)

_RETRY_AFTER_RE = re.compile(r"try again in\s+((?:\d+(?:\.\d+)?(?:ms|m|s))+)", re.IGNORECASE)
_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d+)?)(ms|m|s)")
_FENCE_RE = re.compile(r"^\s*```[a-zA-Z]*\s*|\s*```\s*$")

_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "m": 60.0}


# ---------------------------------------------------------------------------
# Retry helpers
# ---------------------------------------------------------------------------

def parse_retry_after(message: Optional[str]) -> Optional[float]:
    """
    Seconds from a provider hint like "Please try again in 1m2.5s".

    Accepts s, ms and m components; returns None when no hint is present.
    """
    match = _RETRY_AFTER_RE.search(message or "")
    if not match:
        return None
    return sum(float(value) * _UNIT_SECONDS[unit] for value, unit in _DURATION_PART_RE.findall(match.group(1)))


def is_rate_limit_error(error: BaseException) -> bool:
    if getattr(error, "status_code", None) == 429 or getattr(error, "status", None) == 429:
        return True
    return "rate limit" in str(error).lower()


def retry_delay(attempt: int, error: BaseException, schedule: Sequence[float]) -> float:
    """
    Wait before the next attempt after `attempt` (1-based) failed.

    Rate-limit hints stretch the scheduled delay (plus a second of slack) but
    never beyond the longest scheduled delay.
    """
    scheduled = schedule[min(attempt, len(schedule)) - 1]
    if is_rate_limit_error(error):
        hinted = parse_retry_after(str(error))
        if hinted is not None:
            return min(max(hinted + 1, scheduled), max(schedule))
    return scheduled


# ---------------------------------------------------------------------------
# Response validation
# ---------------------------------------------------------------------------

def strip_code_fences(text: str) -> str:
    return _FENCE_RE.sub("", text or "").strip()


def parse_scoring_response(content: Optional[str]) -> Dict[str, Any]:
    """
    Validate the model's JSON answer.

    Raises ScoringResponseError on anything unusable; callers treat that as a
    retryable failure.
    """
    cleaned = strip_code_fences(content or "")
    if not cleaned:
        raise ScoringResponseError("Empty model response")
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ScoringResponseError(f"Model response is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ScoringResponseError("Model response JSON is not an object")

    score = data.get("score")
    if isinstance(score, bool) or not isinstance(score, (int, float)) or math.isnan(score):
        raise ScoringResponseError(f"Invalid score: {score!r}")
    if score < 0 or score > 100:
        raise ScoringResponseError(f"Score out of range: {score}")

    reasoning = data.get("reasoning")
    if not isinstance(reasoning, str) or not reasoning.strip():
        raise ScoringResponseError("Missing reasoning")

    factors = data.get("factors")
    if isinstance(factors, dict):
        factors = {
            k: v for k, v in factors.items()
            if isinstance(v, (int, float)) and not isinstance(v, bool)
        } or None
    else:
        factors = None

    return {
        "score": int(math.floor(score + 0.5)),
        "reasoning": reasoning.strip(),
        "factors": factors,
    }


# ---------------------------------------------------------------------------
# Scorer
# ---------------------------------------------------------------------------

class ConditionScorer:
    """
    Scores slots against the configured model.

    `client` and `sleep` are injectable so tests can run the retry loop with a
    fake model and no real waiting.
    """

    def __init__(
        self,
        db: Session,
        client: Any = None,
        sleep: Callable[[float], None] = time.sleep,
        prompt_builder: Optional[PromptBuilder] = None,
        retry_delays: Optional[Sequence[float]] = None,
    ):
        self.db = db
        self._client = client
        self.sleep = sleep
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.retry_delays = list(retry_delays if retry_delays is not None else settings.SCORING_RETRY_DELAYS_S)
        self.model = settings.SCORING_MODEL
        self.temperature = settings.SCORING_TEMPERATURE
        self.max_tokens = settings.SCORING_MAX_TOKENS

    @property
    def max_attempts(self) -> int:
        return len(self.retry_delays) + 1

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = OpenAI(
                api_key=settings.LLM_API_KEY,
                base_url=settings.LLM_BASE_URL or None,
                timeout=settings.LLM_TIMEOUT_S,
                max_retries=0,
            )
        return self._client

    def _time_series_context(self, slot: ForecastSlot) -> List[ForecastSlot]:
        """Neighbouring slots, newest scrape per timestamp, current timestamp excluded."""
        rows = (
            self.db.query(ForecastSlot)
            .filter(
                ForecastSlot.spot_id == slot.spot_id,
                ForecastSlot.timestamp >= slot.timestamp - CONTEXT_BEFORE_MS,
                ForecastSlot.timestamp <= slot.timestamp + CONTEXT_AFTER_MS,
                ForecastSlot.timestamp != slot.timestamp,
            )
            .order_by(ForecastSlot.timestamp.asc(), ForecastSlot.scrape_timestamp.asc())
            .all()
        )
        latest: Dict[int, ForecastSlot] = {}
        for row in rows:
            latest[row.timestamp] = row
        return [latest[ts] for ts in sorted(latest)]

    def _complete(self, prompt: Dict[str, str]) -> str:
        response = self._get_client().chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": prompt["system"]},
                {"role": "user", "content": prompt["user"]},
            ],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            response_format={"type": "json_object"},
        )
        return response.choices[0].message.content or ""

    def score_single_slot(
        self,
        slot_id: UUID,
        sport: str,
        spot_id: UUID,
        user_id: Optional[str] = None,
        is_contextual: bool = False,
    ) -> Optional[Dict[str, Any]]:
        """
        Score one slot for one sport (and optionally one user).

        Returns {"score", "reasoning", "factors"}, or None when the slot/spot is
        missing, prompt configuration is missing, or all attempts fail.
        """
        slot = self.db.get(ForecastSlot, slot_id)
        spot = self.db.get(Spot, spot_id)
        if slot is None or spot is None:
            logger.warning(f"Cannot score slot {slot_id} for spot {spot_id}: slot or spot not found")
            return None

        try:
            prompts = self.prompt_builder.resolve(self.db, spot_id, sport, user_id)
        except MissingPromptConfigurationError as e:
            logger.error(f"Skipping slot {slot_id} ({sport}): {e}")
            return None

        tz = spot_timezone(spot)
        sun_times = sun_times_for(slot.timestamp, spot) if is_contextual else None
        prompt = self.prompt_builder.build(
            prompts,
            slot,
            self._time_series_context(slot),
            spot.name,
            sun_times=sun_times,
            is_contextual=is_contextual,
            tz=tz,
        )
        # End the read transaction before model calls and backoff sleeps.
        self.db.commit()

        for attempt in range(1, self.max_attempts + 1):
            started = time.monotonic()
            try:
                raw = self._complete(prompt)
                result = parse_scoring_response(raw)
            except Exception as e:
                if attempt >= self.max_attempts:
                    logger.error(
                        f"Scoring failed for slot {slot_id} ({sport}) after {attempt} attempts: {e}",
                        extra=scoring_fields(spot_id, sport, slot_id, user_id, attempts=attempt),
                    )
                    return None
                delay = retry_delay(attempt, e, self.retry_delays)
                logger.warning(
                    f"Scoring attempt {attempt}/{self.max_attempts} failed for slot {slot_id} ({sport}): {e}; "
                    f"retrying in {delay:g}s",
                    extra=scoring_fields(spot_id, sport, slot_id, user_id, attempt=attempt, delay_s=delay),
                )
                self.sleep(delay)
                continue

            duration_ms = int((time.monotonic() - started) * 1000)
            scored_at = now_ms()
            score_id = save_condition_score(
                self.db,
                slot_id=slot.id,
                spot_id=spot.id,
                timestamp=slot.timestamp,
                sport=sport,
                score=result["score"],
                reasoning=result["reasoning"],
                factors=result["factors"],
                model=self.model,
                scored_at=scored_at,
                user_id=user_id,
                prompts=prompts,
            )
            self.db.add(ScoringLog(
                score_id=score_id,
                slot_id=slot.id,
                spot_id=spot.id,
                sport=sport,
                user_id=user_id,
                timestamp=slot.timestamp,
                system_prompt=prompt["system"],
                user_prompt=prompt["user"],
                model=self.model,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                raw_response=raw,
                scored_at=scored_at,
                duration_ms=duration_ms,
                attempt=attempt,
            ))
            self.db.commit()
            logger.info(
                f"Scored slot {slot_id} ({sport}) = {result['score']} on attempt {attempt}",
                extra=scoring_fields(
                    spot_id, sport, slot_id, user_id, score_id=score_id, attempt=attempt, duration_ms=duration_ms
                ),
            )
            return result

        return None
