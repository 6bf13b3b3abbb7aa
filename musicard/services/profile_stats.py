"""
Aggregates shown on a profile and on the admin dashboard.
"""
from collections import Counter

from musicard.schemas import UserProfile, UserStats

# Free-tier limits of the hosted Postgres plan
FREE_TIER_STORAGE_BYTES = 256 * 1024 * 1024
FREE_TIER_ROWS = 10000
# Rough per-row footprint used for the storage estimate
BYTES_PER_ROW = {"users": 1000, "songs": 500, "sessions": 200}
WARN_PERCENTAGE = 80
WARN_SONG_COUNT = 5000


def compute_user_stats(profile: UserProfile) -> UserStats:
    songs = profile.complete_songs
    years = [s.release_year for s in songs if s.release_year]
    return UserStats(
        total_songs=len(songs),
        genre_distribution=dict(Counter(s.genre for s in songs if s.genre)),
        artist_distribution=dict(Counter(s.artist for s in songs)),
        decade_distribution=dict(Counter(f"{(y // 10) * 10}s" for y in years)),
        average_release_year=round(sum(years) / len(years)) if years else 0,
    )


def estimate_free_tier_usage(counts: dict[str, int]) -> dict:
    """Estimated storage and row usage against the free tier, with warnings."""
    storage = sum(counts.get(table, 0) * size for table, size in BYTES_PER_ROW.items())
    rows = sum(counts.get(table, 0) for table in BYTES_PER_ROW)
    usage = {
        "storage": {
            "used": storage,
            "limit": FREE_TIER_STORAGE_BYTES,
            "percentage": round(storage / FREE_TIER_STORAGE_BYTES * 100),
        },
        "rows": {
            "used": rows,
            "limit": FREE_TIER_ROWS,
            "percentage": round(rows / FREE_TIER_ROWS * 100),
        },
    }

    warnings = []
    if usage["storage"]["percentage"] > WARN_PERCENTAGE:
        warnings.append("Storage usage is above 80%")
    if usage["rows"]["percentage"] > WARN_PERCENTAGE:
        warnings.append("Row count is above 80%")
    if counts.get("songs", 0) > WARN_SONG_COUNT:
        warnings.append("Many songs stored, consider deleting old data")

    return {
        "tables": counts,
        "limits": {"storage": FREE_TIER_STORAGE_BYTES, "rows": FREE_TIER_ROWS, "connections": 1},
        "usage": usage,
        "warnings": warnings,
    }
