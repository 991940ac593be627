# artisan_market/services/payload.py
# Input coercion for service payloads. Raises ValidationError instead of
# silently defaulting, since a bad limit or date changes what a code allows.
import enum
from decimal import InvalidOperation

from ..utils.dates import parse_iso8601
from ..utils.money import D
from .errors import ValidationError

def pick(data: dict, *keys):
    """Return (present, value) for the first key found; accepts camelCase aliases."""
    for k in keys:
        if k in data:
            return True, data[k]
    return False, None

def parse_str(value, field, *, max_len, required=False):
    s = "" if value is None else str(value).strip()
    if not s:
        if required:
            raise ValidationError(f"{field} is required")
        return None
    if len(s) > max_len:
        raise ValidationError(f"{field} must be at most {max_len} characters")
    return s

def parse_bool(v, field):
    if isinstance(v, bool):
        return v
    if isinstance(v, str) and v.strip().lower() in {"1", "true", "yes", "y", "on"}:
        return True
    if isinstance(v, str) and v.strip().lower() in {"0", "false", "no", "n", "off"}:
        return False
    if isinstance(v, int):
        return bool(v)
    raise ValidationError(f"{field} must be a boolean")

def parse_opt_decimal(v, field, *, minimum=0, maximum=None):
    if v is None or (isinstance(v, str) and v.strip().lower() in {"", "null"}):
        return None
    if isinstance(v, bool):
        raise ValidationError(f"{field} must be numeric")
    try:
        d = D(v)
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be numeric")
    if not d.is_finite():
        raise ValidationError(f"{field} must be numeric")
    if minimum is not None and d < minimum:
        raise ValidationError(f"{field} must be >= {minimum}")
    if maximum is not None and d > maximum:
        raise ValidationError(f"{field} must be <= {maximum}")
    return d

def parse_opt_int(v, field, *, minimum=None):
    if v is None or (isinstance(v, str) and v.strip().lower() in {"", "null"}):
        return None
    if isinstance(v, bool):
        raise ValidationError(f"{field} must be an integer")
    try:
        i = int(v)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(v, float) and v != i:
        raise ValidationError(f"{field} must be an integer")
    if minimum is not None and i < minimum:
        raise ValidationError(f"{field} must be >= {minimum}")
    return i

def parse_opt_datetime(v, field):
    try:
        return parse_iso8601(v)
    except ValueError:
        raise ValidationError(f"Invalid datetime format for {field}")

def parse_enum(v, enum_cls: type[enum.Enum], field, *, required=False):
    if v is None:
        if required:
            raise ValidationError(f"{field} is required")
        return None
    try:
        return enum_cls(str(v).strip().upper())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"{field} must be one of: {allowed}")

def parse_id_list(v, field):
    if v is None:
        return []
    if not isinstance(v, (list, tuple)):
        raise ValidationError(f"{field} must be a list")
    ids = []
    for x in v:
        i = parse_opt_int(x, field, minimum=1)
        if i is None:
            raise ValidationError(f"{field} contains an empty id")
        if i not in ids:
            ids.append(i)
    return ids
