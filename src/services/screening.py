"""Disallowed-term screening for complaint and poll text.

Scans free text against an immutable :class:`Blocklist`, reports which
terms matched, and produces a masked copy of the text.  Matching is
case-insensitive and whole-word: a term only matches when it is not
directly adjacent to another word character, so ``"assignment"`` is
never flagged for ``"ass"``.

Multi-word terms (``"sand nigger"``) match their words separated by any
run of whitespace.

All functions are pure and total -- every string, including the empty
string, is valid input.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Final

# ---------------------------------------------------------------------------
# Built-in term list
# ---------------------------------------------------------------------------

DEFAULT_BLOCKED_TERMS: Final[tuple[str, ...]] = (
    "damn",
    "hell",
    "shit",
    "fuck",
    "bitch",
    "ass",
    "bastard",
    "crap",
    "piss",
    "cock",
    "dick",
    "pussy",
    "whore",
    "slut",
    "nigger",
    "faggot",
    "retard",
    "gay",
    "homo",
    "lesbian",
    "queer",
    "tranny",
    "chink",
    "spic",
    "kike",
    "wetback",
    "gook",
    "towelhead",
    "sand nigger",
    "beaner",
)

_MASK_CHAR: Final[str] = "*"


def _normalise_terms(terms: Iterable[str]) -> tuple[str, ...]:
    """Lowercase, collapse inner whitespace, drop blanks and duplicates."""
    seen: dict[str, None] = {}
    for raw in terms:
        term = " ".join(raw.split()).lower()
        if term:
            seen.setdefault(term, None)
    return tuple(seen)


def _term_pattern(term: str) -> str:
    body = r"\s+".join(re.escape(word) for word in term.split(" "))
    return rf"(?<!\w){body}(?!\w)"


# ---------------------------------------------------------------------------
# Blocklist
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Blocklist:
    """Immutable, ordered set of disallowed terms with compiled matchers.

    Build instances with :meth:`from_terms`, which normalises the input.
    Term order is preserved and determines the order of
    :func:`list_matched_terms` results.
    """

    terms: tuple[str, ...]
    _matchers: tuple[re.Pattern[str], ...] = field(init=False, repr=False, compare=False)
    _combined: re.Pattern[str] | None = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        matchers = tuple(re.compile(_term_pattern(t), re.IGNORECASE) for t in self.terms)
        combined: re.Pattern[str] | None = None
        if self.terms:
            # Longest first so a phrase wins over a word it contains.
            ordered = sorted(self.terms, key=len, reverse=True)
            combined = re.compile(
                "|".join(_term_pattern(t) for t in ordered),
                re.IGNORECASE,
            )
        object.__setattr__(self, "_matchers", matchers)
        object.__setattr__(self, "_combined", combined)

    @classmethod
    def from_terms(cls, terms: Iterable[str]) -> Blocklist:
        return cls(terms=_normalise_terms(terms))

    def extended(self, extra: Iterable[str]) -> Blocklist:
        """Return a new blocklist with *extra* terms appended."""
        return Blocklist.from_terms((*self.terms, *extra))

    def without(self, allowed: Iterable[str]) -> Blocklist:
        """Return a new blocklist with *allowed* terms removed."""
        dropped = set(_normalise_terms(allowed))
        return Blocklist(terms=tuple(t for t in self.terms if t not in dropped))

    def __len__(self) -> int:
        return len(self.terms)

    def __contains__(self, term: object) -> bool:
        return isinstance(term, str) and " ".join(term.split()).lower() in self.terms


DEFAULT_BLOCKLIST: Final[Blocklist] = Blocklist.from_terms(DEFAULT_BLOCKED_TERMS)


# ---------------------------------------------------------------------------
# Screening operations
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ScreeningResult:
    """Outcome of screening a single piece of text."""

    flagged: bool
    matched_terms: list[str]
    masked_text: str


def contains_disallowed_term(text: str, blocklist: Blocklist = DEFAULT_BLOCKLIST) -> bool:
    """Return ``True`` if any blocklist term occurs in *text* as a whole word."""
    if blocklist._combined is None:
        return False
    return blocklist._combined.search(text) is not None


def list_matched_terms(text: str, blocklist: Blocklist = DEFAULT_BLOCKLIST) -> list[str]:
    """Return every blocklist term found in *text*, in blocklist order.

    Each term appears at most once no matter how often it occurs.
    """
    return [
        term
        for term, matcher in zip(blocklist.terms, blocklist._matchers, strict=True)
        if matcher.search(text) is not None
    ]


def mask_disallowed_terms(text: str, blocklist: Blocklist = DEFAULT_BLOCKLIST) -> str:
    """Replace every matched span in *text* with asterisks of equal length.

    Characters outside matched spans are returned unchanged.
    """
    if blocklist._combined is None:
        return text
    return blocklist._combined.sub(lambda m: _MASK_CHAR * len(m.group(0)), text)


def screen_text(text: str, blocklist: Blocklist = DEFAULT_BLOCKLIST) -> ScreeningResult:
    """Run all screening operations over *text* in one call."""
    matched = list_matched_terms(text, blocklist)
    return ScreeningResult(
        flagged=bool(matched),
        matched_terms=matched,
        masked_text=mask_disallowed_terms(text, blocklist) if matched else text,
    )
