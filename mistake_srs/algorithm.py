"""
Algorithm - SRS Scheduling Logic

Pure interval / ease-factor scheduling (no database calls, no clock reads).

Main workflow:
1. Caller loads the card and resolves "today" as a day key
2. compute_next_state() applies the outcome
3. Caller persists the returned card together with the review attempt

Only the next single review date is computed (just-in-time scheduling);
no future schedule is ever materialized.
"""

from __future__ import annotations

import math
from typing import Optional

from mistake_srs.clock import shift_day_key
from mistake_srs.config import SrsConfig
from mistake_srs.constants import CardStatus, MistakeBucket
from mistake_srs.schemas import Card, StateSnapshot


DEFAULT_CONFIG = SrsConfig()


def round_half_up(value: float) -> int:
    """Round .5 upwards (Python's round() is banker's rounding)."""
    return int(math.floor(value + 0.5))


def clamp_ease(ease: float, config: SrsConfig = DEFAULT_CONFIG) -> float:
    # Rounded to keep repeated +/- deltas from drifting (2.6000000000000005)
    return round(min(max(ease, config.min_ease), config.max_ease), 4)


def compute_next_state(
    card: Card,
    was_correct: bool,
    today: str,
    config: SrsConfig = DEFAULT_CONFIG,
) -> Card:
    """
    Apply one review outcome and return the updated card.

    The input card is not modified.

    Correct answer:
        new/learning -> follow the learning steps, then switch to review
        review       -> interval *= ease, ease += bonus
        interval >= graduation threshold -> graduated
    Incorrect answer:
        back to learning, interval 1, repetition count 0, ease -= penalty

    Args:
        card: Current card state
        was_correct: Review outcome
        today: Day key the review happened on
        config: Tuning parameters

    Returns:
        New Card with scheduling fields and counters updated
    """
    # Graduation is terminal until the card is reactivated
    if card.status == CardStatus.GRADUATED:
        return card.model_copy()

    status = card.status
    interval = card.interval
    ease = card.ease_factor
    repetitions = card.repetition_count
    successes = card.successful_attempts
    failures = card.failed_attempts

    if was_correct:
        repetitions += 1
        successes += 1

        if status in (CardStatus.NEW, CardStatus.LEARNING):
            steps = config.learning_steps
            if repetitions <= len(steps):
                status = CardStatus.LEARNING
                interval = steps[repetitions - 1]
            else:
                status = CardStatus.REVIEW
                interval = steps[-1]
        else:
            interval = round_half_up(interval * ease)
            ease = ease + config.ease_bonus

        interval = max(1, interval)
        if interval >= config.graduation_threshold_days:
            status = CardStatus.GRADUATED
    else:
        failures += 1
        repetitions = 0
        status = CardStatus.LEARNING
        interval = 1
        ease = ease - config.ease_penalty

    return card.model_copy(update={
        "status": status,
        "interval": interval,
        "ease_factor": clamp_ease(ease, config),
        "repetition_count": repetitions,
        "next_review_date": shift_day_key(today, interval),
        "is_due": False,
        "total_attempts": card.total_attempts + 1,
        "successful_attempts": successes,
        "failed_attempts": failures,
        "current_attempt_number": card.current_attempt_number + 1,
    })


# ---- Derived quantities ----

def snapshot_state(card: Card) -> StateSnapshot:
    """Scheduling fields recorded on review attempts."""
    return StateSnapshot(
        interval=card.interval,
        ease_factor=card.ease_factor,
        repetition_count=card.repetition_count,
        status=card.status,
    )


def is_card_due(card: Card, day_key: str) -> bool:
    """Active card whose review date has arrived."""
    return card.is_active and card.next_review_date <= day_key


def should_archive(card: Card) -> bool:
    """Graduated cards leave the active rotation."""
    return card.status == CardStatus.GRADUATED


def derive_bucket(card: Optional[Card]) -> MistakeBucket:
    """
    Map a card onto the notebook's progress bucket.

    None means the question never produced a card.
    """
    if card is None:
        return MistakeBucket.NOT_IN_SRS
    if not card.is_active:
        return MistakeBucket.ARCHIVED
    if card.status == CardStatus.NEW:
        return MistakeBucket.NEW
    if card.status == CardStatus.LEARNING:
        return MistakeBucket.PROGRESSING
    if card.status == CardStatus.REVIEW:
        return MistakeBucket.NEAR
    return MistakeBucket.ARCHIVED
