"""
Weather risk scoring.

Maps a weather snapshot to a 0-100 risk score and a risk tier.
Deterministic and total: never raises, whatever the snapshot holds.

Components:
    Rain probability  -> base score, monotonic increasing
    Wind speed        -> flat penalty above the caution / severe limits
    Condition         -> explicit penalty for storm, heavy rain, winter
                         precipitation and low visibility
    Temperature       -> penalty at or below freezing and in extreme heat
"""

import math
import re
from typing import NamedTuple, Optional
from climaroute.app.models.trip_enums import RiskTier
from climaroute.app.schemas.weather import WeatherSnapshot


# Base score
RAIN_PROBABILITY_WEIGHT = 0.5  # 100% rain probability -> 50 points

# Wind (km/h)
WIND_CAUTION_KPH = 40.0
WIND_SEVERE_KPH = 60.0
WIND_PENALTY = 10
SEVERE_WIND_PENALTY = 25

# Condition penalties
STORM_PENALTY = 35
HEAVY_RAIN_PENALTY = 20
WINTER_PRECIP_PENALTY = 15
LOW_VISIBILITY_PENALTY = 10

STORM_TERMS = ("thunderstorm", "storm", "hailstorm", "snowstorm", "rainstorm", "tornado", "hurricane", "cyclone")
HEAVY_RAIN_TERMS = ("heavy rain", "heavy_rain", "heavy-rain", "downpour", "torrential")
WINTER_TERMS = ("snow", "snowfall", "sleet", "hail", "ice", "icy", "freezing")
LOW_VISIBILITY_TERMS = ("fog", "mist", "haze", "smoke", "dust")


def _family(terms):
    # Whole words only, with an optional plural
    return re.compile(r"\b(?:" + "|".join(map(re.escape, terms)) + r")s?\b")


CONDITION_FAMILIES = (
    (_family(STORM_TERMS), STORM_PENALTY),
    (_family(HEAVY_RAIN_TERMS), HEAVY_RAIN_PENALTY),
    (_family(WINTER_TERMS), WINTER_PRECIP_PENALTY),
    (_family(LOW_VISIBILITY_TERMS), LOW_VISIBILITY_PENALTY),
)

# Temperature (deg C)
FREEZING_POINT_C = 0.0
EXTREME_HEAT_C = 40.0
FREEZING_PENALTY = 15
EXTREME_HEAT_PENALTY = 10

# Tier thresholds: score < CAUTION -> Clear, score >= HAZARDOUS -> Hazardous
CAUTION_THRESHOLD = 34
HAZARDOUS_THRESHOLD = 67

MIN_SCORE = 0
MAX_SCORE = 100


class RiskAssessment(NamedTuple):
    risk_score: int
    risk_tier: RiskTier


def _reading(value) -> Optional[float]:
    """Numeric reading, or None when missing or non-finite."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def _finite(value) -> float:
    reading = _reading(value)
    return 0.0 if reading is None else reading


def condition_penalty(condition: Optional[str]) -> int:
    """
    Penalty for the weather condition category.

    Terms match whole words. Only the most severe matching family counts.
    """
    text = (condition or "").strip().lower()
    if not text:
        return 0
    for pattern, penalty in CONDITION_FAMILIES:
        if pattern.search(text):
            return penalty
    return 0


def wind_penalty(wind_speed: float) -> int:
    if wind_speed > WIND_SEVERE_KPH:
        return SEVERE_WIND_PENALTY
    if wind_speed > WIND_CAUTION_KPH:
        return WIND_PENALTY
    return 0


def temperature_penalty(temperature: float) -> int:
    if temperature <= FREEZING_POINT_C:
        return FREEZING_PENALTY
    if temperature >= EXTREME_HEAT_C:
        return EXTREME_HEAT_PENALTY
    return 0


def tier_for(score: int) -> RiskTier:
    """Map a risk score to its tier. Monotonic non-decreasing in score."""
    if score < CAUTION_THRESHOLD:
        return RiskTier.CLEAR
    if score < HAZARDOUS_THRESHOLD:
        return RiskTier.CAUTION
    return RiskTier.HAZARDOUS


def score(snapshot: Optional[WeatherSnapshot]) -> RiskAssessment:
    """
    Score a weather snapshot.

    Args:
        snapshot: Weather reading (None is scored as calm weather)

    Returns:
        RiskAssessment(risk_score in [0, 100], risk_tier)
    """
    if snapshot is None:
        return RiskAssessment(MIN_SCORE, tier_for(MIN_SCORE))

    rain = min(max(_finite(snapshot.rain_probability), 0.0), 100.0)
    total = RAIN_PROBABILITY_WEIGHT * rain
    total += wind_penalty(_finite(snapshot.wind_speed))
    total += condition_penalty(snapshot.condition)

    temperature = _reading(snapshot.temperature)
    if temperature is not None:
        total += temperature_penalty(temperature)

    risk_score = int(round(min(max(total, MIN_SCORE), MAX_SCORE)))
    return RiskAssessment(risk_score, tier_for(risk_score))
