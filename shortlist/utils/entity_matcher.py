"""
Company and university name normalization and fuzzy matching.

Matching is deliberately permissive: after normalization, names match when
one contains the other, and company names are first widened with a small
alias table (AWS/Amazon, Meta/Facebook, ...). Short names therefore produce
false positives ("meta" inside "metal"); list entries should be specific.
"""

import re

_PUNCTUATION_PATTERN = re.compile(r"[.,\-()\[\]]")
_WHITESPACE_PATTERN = re.compile(r"\s+")

COMPANY_STOP_WORDS = frozenset(
    {
        "ltd",
        "inc",
        "llc",
        "technologies",
        "tech",
        "labs",
        "israel",
        "corp",
        "co",
        "company",
        "corporation",
        "limited",
        "group",
        "systems",
        "software",
        "solutions",
    }
)

UNIVERSITY_STOP_WORDS = frozenset(
    {"university", "institute", "college", "of", "technology", "the"}
)

# key -> equivalent names; a group applies when the key or any value
# appears in the normalized name
COMPANY_ALIASES: dict[str, tuple[str, ...]] = {
    "aws": ("amazon",),
    "meta": ("facebook",),
    "google": ("google cloud",),
    "microsoft": ("microsoft azure",),
    "apple": ("apple inc",),
    "netflix": ("nflx",),
}


def _normalize(name: str, stop_words: frozenset[str]) -> str:
    if not name:
        return ""
    text = _PUNCTUATION_PATTERN.sub(" ", name.lower().strip())
    words = [word for word in _WHITESPACE_PATTERN.split(text) if word]
    return " ".join(word for word in words if word not in stop_words)


def normalize_company(name: str) -> str:
    """Normalize a company name ("Wix.com Ltd." -> "wix com")."""
    return _normalize(name, COMPANY_STOP_WORDS)


def normalize_university(name: str) -> str:
    """Normalize a university name ("Technion - Israel Institute of Technology" -> "technion israel")."""
    return _normalize(name, UNIVERSITY_STOP_WORDS)


def get_company_aliases(name: str) -> list[str]:
    """Return the normalized name plus every alias group it touches.

    Example:
        >>> sorted(get_company_aliases("Amazon Web Services Inc"))
        ['amazon', 'amazon web services', 'aws']
    """
    normalized = normalize_company(name)
    if not normalized:
        return []

    aliases: dict[str, None] = {normalized: None}
    for key, values in COMPANY_ALIASES.items():
        if key in normalized or any(value in normalized for value in values):
            aliases[key] = None
            for value in values:
                aliases[value] = None
    return list(aliases)


def is_company_match(a: str, b: str) -> bool:
    """True if any alias of one company contains any alias of the other."""
    if not a or not b:
        return False

    aliases_a = get_company_aliases(a)
    aliases_b = get_company_aliases(b)
    return any(
        alias_a in alias_b or alias_b in alias_a
        for alias_a in aliases_a
        for alias_b in aliases_b
    )


def is_university_match(a: str, b: str) -> bool:
    """True if one normalized university name contains the other."""
    if not a or not b:
        return False

    normalized_a = normalize_university(a)
    normalized_b = normalize_university(b)
    if not normalized_a or not normalized_b:
        return False
    return normalized_a in normalized_b or normalized_b in normalized_a
