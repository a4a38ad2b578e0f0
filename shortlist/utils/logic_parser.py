"""
Boolean Term Expression Parser

Parses free-text filter expressions such as "node AND react",
"typescript OR react" or "(node AND react) OR python" into a LogicNode tree
and evaluates the tree against a candidate's searchable text.

Grammar (informal):
    expression := or_expr
    or_expr    := and_expr ("OR" and_expr)*
    and_expr   := atom ("AND" atom)*
    atom       := "(" expression ")" | TERM

Operator spellings: AND, &, OR, | (case-insensitive, whitespace delimited);
commas are OR. Input without any operator is treated as space-separated
keywords joined by OR. Parsing never raises: fragments that cannot be
parsed (for example unbalanced parentheses) become literal TERM leaves.

Example Usage:
    from shortlist.utils.logic_parser import parse, evaluate

    tree = parse("(node AND react) OR python")
    result = evaluate(tree, ["node", "react", "python"], "5 years of node.js and react")
    assert result.found
"""

import re
from typing import Literal, Optional, Sequence

import structlog
from pydantic import BaseModel, Field

from shortlist.models.candidate import Candidate, aggregate_searchable_text
from shortlist.models.rules import SynonymEntry
from shortlist.utils.synonyms import expand

logger = structlog.get_logger(__name__)

_AND_PATTERN = re.compile(r"\s+(?:AND|&)\s+", re.IGNORECASE)
_OR_PATTERN = re.compile(r"\s+(?:OR|\|)\s+", re.IGNORECASE)
_COMMA_PATTERN = re.compile(r"\s*,\s*")

# Deeper nesting is not parsed; the whole expression becomes one literal TERM
MAX_NESTING_DEPTH = 32


class LogicNode(BaseModel):
    """Node of a parsed term expression.

    TERM nodes are leaves carrying ``value``; AND/OR nodes carry ``children``.
    """

    type: Literal["AND", "OR", "TERM"]
    value: Optional[str] = None
    children: list["LogicNode"] = Field(default_factory=list)

    @classmethod
    def term(cls, value: str) -> "LogicNode":
        return cls(type="TERM", value=value.strip())


class EvaluationResult(BaseModel):
    """Result of evaluating a LogicNode tree against profile text."""

    found: bool
    matches: list[str] = Field(default_factory=list)


def normalize_operators(text: str) -> str:
    """Rewrite operator spellings to canonical " AND " / " OR " tokens."""
    normalized = text.strip()
    normalized = _AND_PATTERN.sub(" AND ", normalized)
    normalized = _OR_PATTERN.sub(" OR ", normalized)
    normalized = _COMMA_PATTERN.sub(" OR ", normalized)
    return normalized.strip()


def parse(text: str) -> LogicNode:
    """Parse a term expression into a LogicNode tree.

    Args:
        text: Free-text expression

    Returns:
        Root LogicNode. Empty input yields an OR node without children.
    """
    if not text or not text.strip():
        return LogicNode(type="OR")

    normalized = normalize_operators(text)

    if _nesting_depth(normalized) > MAX_NESTING_DEPTH:
        logger.warning(
            "Expression nested too deeply, treating it as a literal term",
            max_depth=MAX_NESTING_DEPTH,
        )
        return LogicNode.term(normalized)

    if " AND " not in normalized and " OR " not in normalized:
        # Legacy keyword list: "python java go" means any of the words
        return LogicNode(
            type="OR",
            children=[LogicNode.term(word) for word in normalized.split()],
        )

    return _parse_expression(normalized)


def _nesting_depth(expr: str) -> int:
    depth = 0
    deepest = 0
    for char in expr:
        if char == "(":
            depth += 1
            deepest = max(deepest, depth)
        elif char == ")":
            depth -= 1
    return deepest


def _parse_expression(expr: str) -> LogicNode:
    expr = expr.strip()

    # OR binds looser than AND, so it is split first
    for operator in ("OR", "AND"):
        parts = _split_top_level(expr, operator)
        if parts is None:
            continue
        children = [_parse_expression(part) for part in parts if part.strip()]
        if not children:
            return LogicNode.term(expr)
        if len(children) == 1:
            return children[0]
        return LogicNode(type=operator, children=children)

    if _is_wrapped(expr):
        return _parse_expression(expr[1:-1])

    return LogicNode.term(expr)


def _split_top_level(expr: str, operator: str) -> Optional[list[str]]:
    """Split on " {operator} " outside parentheses.

    Returns:
        The parts, or None if the operator does not occur at depth 0
    """
    token = f" {operator} "
    parts: list[str] = []
    current: list[str] = []
    depth = 0
    split = False
    i = 0

    while i < len(expr):
        char = expr[i]
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        elif depth == 0 and expr.startswith(token, i):
            parts.append("".join(current).strip())
            current = []
            split = True
            i += len(token)
            continue
        current.append(char)
        i += 1

    if not split:
        return None

    parts.append("".join(current).strip())
    return parts


def _is_wrapped(expr: str) -> bool:
    """True if the outermost parentheses enclose the entire expression."""
    if len(expr) < 2 or not (expr.startswith("(") and expr.endswith(")")):
        return False

    depth = 0
    for index, char in enumerate(expr):
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0 and index != len(expr) - 1:
                return False
            if depth < 0:
                return False
    return depth == 0


def has_word_boundary_match(text: str, term: str) -> bool:
    """Case-insensitive whole-word search of ``term`` in ``text``.

    Boundaries are non-word characters or string ends, so "java" does not
    match inside "javascript" and "c++" still matches "c++ developer".
    """
    if not text or not term:
        return False
    pattern = rf"(?<!\w){re.escape(term)}(?!\w)"
    return re.search(pattern, text, re.IGNORECASE) is not None


def evaluate(
    node: LogicNode, expanded_terms: Sequence[str], profile_text: str
) -> EvaluationResult:
    """Evaluate a LogicNode tree against profile text.

    A TERM leaf is satisfied when some expanded term contains (or is
    contained in) the leaf value and that expanded term occurs in the
    profile text as a whole word. All children of AND/OR nodes are
    evaluated so that the match list is complete.

    Args:
        node: Root of the parsed expression
        expanded_terms: Base terms plus their synonyms (lower-cased)
        profile_text: Text to search

    Returns:
        EvaluationResult with ``found`` and the deduplicated matched terms
    """
    matches: list[str] = []
    terms = [term.lower().strip() for term in expanded_terms if term and term.strip()]

    def evaluate_node(n: LogicNode) -> bool:
        if n.type == "TERM":
            if not n.value:
                return False
            value = n.value.lower()
            candidates = [term for term in terms if value in term or term in value]
            for term in candidates:
                if has_word_boundary_match(profile_text, term):
                    matches.append(term)
                    return True
            return False

        results = [evaluate_node(child) for child in n.children]
        if n.type == "AND":
            return all(results)
        # OR; an empty OR node is never satisfied
        return any(results)

    found = evaluate_node(node)
    return EvaluationResult(found=found, matches=list(dict.fromkeys(matches)))


def extract_terms(node: LogicNode) -> list[str]:
    """Collect lower-cased leaf values of a tree, in order."""
    if node.type == "TERM":
        return [node.value.lower().strip()] if node.value else []
    terms: list[str] = []
    for child in node.children:
        terms.extend(extract_terms(child))
    return terms


def expand_terms_with_logic(
    text: str, synonyms: Sequence[SynonymEntry]
) -> tuple[LogicNode, list[str]]:
    """Parse an expression and expand its leaf terms with synonyms.

    Returns:
        Tuple of (logic_tree, expanded_terms)
    """
    if not text or not text.strip():
        return LogicNode(type="OR"), []

    tree = parse(text)
    return tree, expand(extract_terms(tree), synonyms)


def check_terms_with_logic(
    candidate: Candidate, text: str, synonyms: Sequence[SynonymEntry]
) -> EvaluationResult:
    """Check a term expression against a candidate's searchable text.

    An empty expression returns ``found=False``; callers decide whether an
    empty rule means "no constraint".
    """
    if not text or not text.strip():
        return EvaluationResult(found=False)

    tree, expanded_terms = expand_terms_with_logic(text, synonyms)
    result = evaluate(tree, expanded_terms, aggregate_searchable_text(candidate))

    logger.debug(
        "Term expression evaluated",
        candidate_id=candidate.id,
        expression=text,
        found=result.found,
        matches=result.matches,
    )
    return result
