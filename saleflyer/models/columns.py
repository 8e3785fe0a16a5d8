"""Column defaults shared by the flyer models."""
import uuid
from datetime import datetime, timezone


def new_id() -> str:
    """Generate a UUID string primary key."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Timezone-aware now, with microseconds so created_at ordering is stable."""
    return datetime.now(timezone.utc)


def iso(value):
    """Serialize dates/datetimes for JSON payloads."""
    return value.isoformat() if value is not None else None
