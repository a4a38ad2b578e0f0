"""Synonym expansion for filter terms.

Expansion is one hop in both directions: with rows engineer<->developer and
developer<->programmer, "engineer" expands to {engineer, developer} only.
Chains are not followed; add a direct row if two terms should be linked.
"""

from typing import Iterable, Sequence

from shortlist.models.rules import SynonymEntry


def expand(terms: Iterable[str], synonyms: Sequence[SynonymEntry]) -> list[str]:
    """Expand base terms with their direct synonyms.

    Args:
        terms: Base terms (compared trimmed and case-folded)
        synonyms: Synonym table rows

    Returns:
        Deduplicated list of base terms and synonyms, lower-cased. Order is
        not meaningful.
    """
    expanded: dict[str, None] = {}

    for raw_term in terms:
        term = raw_term.strip().casefold()
        if not term:
            continue
        expanded[term] = None

        for synonym in synonyms:
            canonical = synonym.canonical_term.strip().casefold()
            variant = synonym.variant_term.strip().casefold()
            if canonical == term and variant:
                expanded[variant] = None
            if variant == term and canonical:
                expanded[canonical] = None

    return list(expanded)
