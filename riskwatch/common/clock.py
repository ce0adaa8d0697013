from datetime import datetime, timezone

def utcnow() -> datetime:
    """현재 UTC 시각 (timezone-aware)."""
    return datetime.now(timezone.utc)

def ensure_utc(value: datetime) -> datetime:
    """naive datetime은 UTC로 간주합니다."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
