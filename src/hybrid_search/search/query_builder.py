"""Keyword query construction.

Input text is normalized into tokens the same way the index analyzer splits
document bodies, so a token typed by a user always lines up with an indexed
term. Fuzzy mode turns every token into a prefix match; both modes AND the
tokens together.
"""

import re
from typing import List

from whoosh.query import And, NullQuery, Prefix, Query, Term

from .index_schema import BODY_FIELD

_PUNCTUATION = re.compile(r"[^\w\s]", re.UNICODE)


def tokenize(text: str) -> List[str]:
    """Lower-case, strip punctuation and split on whitespace."""
    if not text:
        return []
    cleaned = _PUNCTUATION.sub(" ", text.lower())
    return [token for token in cleaned.split() if token]


def build_query(text: str, fuzzy: bool = True, fieldname: str = BODY_FIELD) -> Query:
    """Build a whoosh query for ``text``.

    Returns ``NullQuery`` (matches nothing) when no tokens remain.
    """
    tokens = tokenize(text)
    if not tokens:
        return NullQuery

    if fuzzy:
        # constantscore=False keeps BM25F scoring on the expanded terms
        terms = [Prefix(fieldname, token, constantscore=False) for token in tokens]
    else:
        terms = [Term(fieldname, token) for token in tokens]

    if len(terms) == 1:
        return terms[0]
    return And(terms)


def build_query_string(text: str, fuzzy: bool = True) -> str:
    """Render the query in tsquery notation, e.g. ``test:* & query:*``."""
    tokens = tokenize(text)
    if fuzzy:
        tokens = [f"{token}:*" for token in tokens]
    return " & ".join(tokens)
