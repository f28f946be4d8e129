"""Cache key builders and TTLs."""

from __future__ import annotations

PROBLEM_CACHE_KEY = "problem:{problem_id}"
PROBLEM_CACHE_TTL = 3600  # seconds

USER_PROGRESS_CACHE_KEY = "user_progress:{user_id}:{topic_id}"
USER_PROGRESS_CACHE_TTL = 1800

USER_STATS_CACHE_KEY = "user_stats:{user_id}"
USER_STATS_CACHE_TTL = 1800

USER_ACHIEVEMENTS_CACHE_KEY = "user_achievements:{user_id}"
USER_ACHIEVEMENTS_CACHE_TTL = 3600


def problem_key(problem_id: str) -> str:
    return PROBLEM_CACHE_KEY.format(problem_id=problem_id)


def user_progress_key(user_id: str, topic_id: str) -> str:
    return USER_PROGRESS_CACHE_KEY.format(user_id=user_id, topic_id=topic_id)


def user_stats_key(user_id: str) -> str:
    return USER_STATS_CACHE_KEY.format(user_id=user_id)


def user_achievements_key(user_id: str) -> str:
    return USER_ACHIEVEMENTS_CACHE_KEY.format(user_id=user_id)
