# analytics.py
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

import models

DEFAULT_WELLNESS = 50
POSITIVE_MOODS = {"happy", "very_happy"}


def _wellness(entry: models.JournalEntry) -> Optional[int]:
    return (entry.analysis or {}).get("wellnessScore")


def _sentiment_score(entry: models.JournalEntry) -> float:
    sentiment = (entry.analysis or {}).get("sentiment") or {}
    return sentiment.get("score") or 0


def _start_of_month(now: datetime) -> datetime:
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def _entries_query(db: Session, user: models.User):
    return db.query(models.JournalEntry).filter(models.JournalEntry.user_id == user.id)


def mood_counts(db: Session, user: models.User) -> dict:
    rows = (
        db.query(models.JournalEntry.mood, func.count(models.JournalEntry.id))
        .filter(models.JournalEntry.user_id == user.id)
        .group_by(models.JournalEntry.mood)
        .all()
    )
    return {mood: count for mood, count in rows}


def journal_stats(db: Session, user: models.User, now: Optional[datetime] = None) -> dict:
    """日记页的统计：总数、本月数、心情分布、最近 7 天每日篇数。"""
    now = now or models.utcnow()
    week_ago = now - timedelta(days=7)

    total = _entries_query(db, user).count()
    this_month = _entries_query(db, user).filter(models.JournalEntry.created_at >= _start_of_month(now)).count()

    day = func.date(models.JournalEntry.created_at)
    activity = (
        db.query(day, func.count(models.JournalEntry.id))
        .filter(models.JournalEntry.user_id == user.id, models.JournalEntry.created_at >= week_ago)
        .group_by(day)
        .order_by(day)
        .all()
    )

    return {
        "totalEntries": total,
        "entriesThisMonth": this_month,
        "moodDistribution": [{"mood": m, "count": c} for m, c in mood_counts(db, user).items()],
        "recentActivity": [{"date": str(d), "count": c} for d, c in activity],
    }


def overview(db: Session, user: models.User, now: Optional[datetime] = None) -> dict:
    now = now or models.utcnow()

    total = _entries_query(db, user).count()
    this_month = _entries_query(db, user).filter(models.JournalEntry.created_at >= _start_of_month(now)).count()

    scores = [s for s in (_wellness(e) for e in _entries_query(db, user).all()) if s is not None]
    average = round(sum(scores) / len(scores)) if scores else DEFAULT_WELLNESS

    return {
        "totalEntries": total,
        "entriesThisMonth": this_month,
        "averageWellness": average,
        "analyzedEntriesCount": len(scores),
        "moodDistribution": mood_counts(db, user),
    }


def trends(db: Session, user: models.User, period: int = 30, now: Optional[datetime] = None) -> dict:
    now = now or models.utcnow()
    since = now - timedelta(days=period)

    entries = [
        e
        for e in _entries_query(db, user)
        .filter(models.JournalEntry.created_at >= since)
        .order_by(models.JournalEntry.created_at)
        .all()
        if _wellness(e) is not None
    ]

    points = [
        {
            "date": e.created_at.date().isoformat(),
            "wellnessScore": _wellness(e),
            "sentimentScore": _sentiment_score(e),
            "mood": e.mood,
            "title": e.title,
        }
        for e in entries
    ]

    mood_frequency = {}
    for e in entries:
        mood_frequency[e.mood] = mood_frequency.get(e.mood, 0) + 1

    if entries:
        average_wellness = round(sum(p["wellnessScore"] for p in points) / len(points))
        average_sentiment = round(sum(p["sentimentScore"] for p in points) / len(points), 2)
    else:
        average_wellness = DEFAULT_WELLNESS
        average_sentiment = 0

    return {
        "period": period,
        "totalEntries": len(entries),
        "averageWellness": average_wellness,
        "averageSentiment": average_sentiment,
        "trends": points,
        "moodFrequency": mood_frequency,
    }


def insights(db: Session, user: models.User, now: Optional[datetime] = None) -> List[dict]:
    """基于最近 7 天与之前 8-30 天对比的规则化提示。"""
    now = now or models.utcnow()
    seven_days_ago = now - timedelta(days=7)
    thirty_days_ago = now - timedelta(days=30)

    recent = _entries_query(db, user).filter(models.JournalEntry.created_at >= seven_days_ago).all()
    older = (
        _entries_query(db, user)
        .filter(
            models.JournalEntry.created_at >= thirty_days_ago,
            models.JournalEntry.created_at < seven_days_ago,
        )
        .all()
    )

    cards = []

    if len(recent) >= 3:
        cards.append({
            "type": "success",
            "title": "Consistent Journaling",
            "message": f"You've written {len(recent)} entries in the past week. "
                       "Great job maintaining your journaling habit!",
        })

    recent_scores = [s for s in map(_wellness, recent) if s is not None]
    older_scores = [s for s in map(_wellness, older) if s is not None]
    if recent_scores and older_scores:
        improvement = sum(recent_scores) / len(recent_scores) - sum(older_scores) / len(older_scores)
        if improvement > 10:
            cards.append({
                "type": "success",
                "title": "Wellness Improvement",
                "message": f"Your wellness score has improved by {round(improvement)} points recently. "
                           "Your self-care efforts are paying off!",
            })
        elif improvement < -10:
            cards.append({
                "type": "warning",
                "title": "Wellness Attention",
                "message": "Your wellness score has decreased recently. Consider focusing on self-care "
                           "activities and reach out for support if needed.",
            })

    if recent:
        ratio = sum(1 for e in recent if e.mood in POSITIVE_MOODS) / len(recent)
        if ratio >= 0.6:
            cards.append({
                "type": "success",
                "title": "Positive Mood Pattern",
                "message": f"{round(ratio * 100)}% of your recent entries show positive moods. Keep up the great work!",
            })

    if not cards:
        cards.append({
            "type": "info",
            "title": "Keep Going",
            "message": "Continue your journaling journey! Regular reflection helps build self-awareness "
                       "and emotional wellbeing.",
        })

    return cards
