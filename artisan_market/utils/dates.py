# artisan_market/utils/dates.py
from datetime import datetime, timezone

def utcnow() -> datetime:
    # naive UTC, matching what the DateTime columns store
    return datetime.now(timezone.utc).replace(tzinfo=None)

def parse_iso8601(s):
    if s is None:
        return None
    if isinstance(s, datetime):
        dt = s
    else:
        s = str(s).strip()
        if not s:
            return None
        # support trailing 'Z' (UTC)
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(s)
        except ValueError:
            raise ValueError(f"invalid ISO-8601 datetime: {s!r}")
    if dt.tzinfo:
        return dt.astimezone(timezone.utc).replace(tzinfo=None)  # store naive UTC
    return dt

def iso(dt):
    return dt.isoformat() if dt else None
