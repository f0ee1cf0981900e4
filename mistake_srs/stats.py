"""
Review statistics for dashboards.
"""

from __future__ import annotations

from datetime import datetime

import pandas as pd

from mistake_srs.algorithm import round_half_up
from mistake_srs.attempt_log import AttemptLog
from mistake_srs.card_store import CardStore
from mistake_srs.clock import Clock, DayLike
from mistake_srs.constants import CardStatus
from mistake_srs.schemas import ReviewStats

CARD_COLUMNS = ["status", "is_active", "next_review_date", "total_attempts", "successful_attempts"]
SUMMARY_COLUMNS = ["day", "attempts", "correct", "accuracy"]


def load_cards_df(cards: CardStore, user_id: str) -> pd.DataFrame:
    """
    Load a learner's cards (every status) into a dataframe.
    """
    rows = [card.model_dump(mode="json", include=set(CARD_COLUMNS)) for card in cards.get_all_for_user(user_id)]
    if not rows:
        return pd.DataFrame(columns=CARD_COLUMNS)
    return pd.DataFrame(rows, columns=CARD_COLUMNS)


def compute_review_stats(cards_df: pd.DataFrame, today: str) -> ReviewStats:
    """
    Aggregate card counts and accuracy.

    due_today is derived from next_review_date, never from the cached flag.
    """
    by_status = {status.value: 0 for status in CardStatus}
    if cards_df.empty:
        return ReviewStats(by_status=by_status)

    active = cards_df["is_active"].astype(bool)
    for status, count in cards_df["status"].value_counts().items():
        by_status[str(status)] = int(count)

    total_attempts = int(cards_df["total_attempts"].sum())
    successful = int(cards_df["successful_attempts"].sum())
    success_rate = round_half_up(successful / total_attempts * 100) if total_attempts else 0

    return ReviewStats(
        total=len(cards_df),
        active=int(active.sum()),
        archived=int((~active).sum()),
        by_status=by_status,
        due_today=int((active & (cards_df["next_review_date"] <= today)).sum()),
        total_attempts=total_attempts,
        success_rate=success_rate,
    )


def get_review_stats(cards: CardStore, clock: Clock, user_id: str, today: DayLike = None) -> ReviewStats:
    return compute_review_stats(load_cards_df(cards, user_id), clock.resolve_day(today))


def daily_review_summary(attempts: AttemptLog, clock: Clock, user_id: str, since: datetime) -> pd.DataFrame:
    """
    Per-day review counts since `since`.

    Days are reference-timezone day keys; days without reviews are omitted.

    Returns:
        DataFrame with columns day, attempts, correct, accuracy (0-1), ordered by day
    """
    rows = [
        {"day": clock.day_key(a.attempted_at), "was_correct": a.was_correct}
        for a in attempts.list_since(user_id, since)
    ]
    if not rows:
        return pd.DataFrame(columns=SUMMARY_COLUMNS)

    df = pd.DataFrame(rows)
    daily = (
        df.groupby("day")["was_correct"]
        .agg(attempts="size", correct="sum")
        .reset_index()
        .sort_values("day")
    )
    daily["correct"] = daily["correct"].astype(int)
    daily["accuracy"] = daily["correct"] / daily["attempts"]
    return daily[SUMMARY_COLUMNS].reset_index(drop=True)
