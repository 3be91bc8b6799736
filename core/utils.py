# core/utils.py

from datetime import date, datetime
from typing import Optional


def sanitize(data: dict) -> dict:
    """
    Sanitize a payload before insert/update:
    - Empty strings → None
    - Strip string whitespace
    - dates/datetimes → ISO strings (PostgREST JSON)
    - Enums → their value
    """
    clean = {}

    for k, v in data.items():
        if v is None:
            clean[k] = None
            continue

        if isinstance(v, bool):
            clean[k] = v
            continue

        if isinstance(v, (date, datetime)):
            clean[k] = v.isoformat()
            continue

        value = getattr(v, "value", v)

        if isinstance(value, str):
            stripped = value.strip()
            clean[k] = stripped or None
            continue

        clean[k] = value

    return clean


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """'2024-05-01' or '2024-05-01T10:00:00Z' → date. None/blank → None."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if not text:
        return None

    if "T" in text or " " in text:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    return date.fromisoformat(text[:10])


def first_of_month(today: Optional[date] = None) -> date:
    today = today or date.today()
    return today.replace(day=1)


def first_of_year(today: Optional[date] = None) -> date:
    today = today or date.today()
    return date(today.year, 1, 1)


def to_number(value) -> float:
    """Supabase numeric columns arrive as str, int, float or None."""
    if value is None:
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0
