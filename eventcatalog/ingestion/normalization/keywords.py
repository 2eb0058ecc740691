"""
Keyword extraction from event titles for performer searches.

extract_keywords() strips venue names, tour suffixes, "live" markers and
other decorations, then splits on collaboration separators so the primary
performer comes first.
"""

import re

REMOVE_PATTERNS = [
    re.compile(r"\s+at\s+.+$", re.IGNORECASE),  # "at Moody Center"
    re.compile(r"^an evening with\s+", re.IGNORECASE),
    re.compile(r"^a night with\s+", re.IGNORECASE),
    re.compile(r"\s*:\s*.+tour.*", re.IGNORECASE),  # ": Baby J Tour"
    re.compile(r"\s*-\s*.+tour.*", re.IGNORECASE),  # "- World Tour 2024"
    re.compile(r"\s+tour\s*$", re.IGNORECASE),
    re.compile(r"\s*live\s*(in\s+.+)?$", re.IGNORECASE),  # "Live in Austin"
    re.compile(r"\s*presents?\s*", re.IGNORECASE),
    re.compile(r"\([^)]*\)"),
    re.compile(r"\[[^\]]*\]"),
    re.compile(r"\s*\d{4}\s*$"),  # trailing year
    re.compile(r"\s*-\s*\d{1,2}/\d{1,2}.*"),  # "- 12/15 ..."
]

SPLIT_PATTERNS = [
    re.compile(r"\s+with\s+", re.IGNORECASE),
    re.compile(r"\s+feat\.?\s+", re.IGNORECASE),
    re.compile(r"\s+featuring\s+", re.IGNORECASE),
    re.compile(r"\s+ft\.?\s+", re.IGNORECASE),
    re.compile(r"\s+&\s+"),
    re.compile(r"\s+vs\.?\s+", re.IGNORECASE),
    re.compile(r"\s+versus\s+", re.IGNORECASE),
]

# Band names that must not be split or trimmed
PROTECTED_PHRASES = [
    "mumford and sons",
    "florence and the machine",
    "earth wind and fire",
    "earth, wind and fire",
    "simon and garfunkel",
    "hall and oates",
    "guns n roses",
    "ac/dc",
]

GENERIC_TERMS = {
    "christmas",
    "holiday",
    "new year",
    "halloween",
    "easter",
    "gospel",
    "brunch",
    "night",
    "evening",
    "morning",
    "live",
    "tour",
    "show",
    "concert",
    "festival",
    "tribute",
    "celebration",
    "party",
    "jam",
    "session",
}


def extract_keywords(title: str, venue_name: str | None = None) -> list[str]:
    """
    Return searchable keywords from a title, primary performer first.

    Example:
        >>> extract_keywords("An Evening with Jason Isbell & Amanda Shires")
        ['Jason Isbell', 'Amanda Shires']
    """
    cleaned = (title or "").strip()

    lower = cleaned.lower()
    if any(phrase in lower for phrase in PROTECTED_PHRASES):
        return [cleaned]

    if venue_name:
        cleaned = re.sub(re.escape(venue_name), "", cleaned, flags=re.IGNORECASE)

    for pattern in REMOVE_PATTERNS:
        cleaned = pattern.sub("", cleaned)

    cleaned = cleaned.strip()
    if len(cleaned) < 3:
        return []

    keywords = [cleaned]
    for pattern in SPLIT_PATTERNS:
        keywords = [part.strip() for k in keywords for part in pattern.split(k)]

    return [re.sub(r"\s+", " ", k).strip() for k in keywords if len(k.strip()) > 2]


def primary_keyword(title: str, venue_name: str | None = None) -> str | None:
    """The first extracted keyword, or None when nothing searchable is left."""
    keywords = extract_keywords(title, venue_name)
    return keywords[0] if keywords else None


def is_generic_query(query: str) -> bool:
    """True for seasonal/generic single terms and anything under 4 chars."""
    normalized = (query or "").lower().strip()
    return normalized in GENERIC_TERMS or len(normalized) < 4
