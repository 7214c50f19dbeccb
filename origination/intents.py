"""Rule-based intent classification.

A ``Vocabulary`` is an ordered tuple of ``(tag, predicate)`` rules plus a
default tag.  ``classify`` normalizes the text and returns the tag of the
first rule whose predicate matches.  Every stage defines its own vocabulary
because the same words ("yes", "change") mean different things at
different points in the workflow.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable

Predicate = Callable[[str], bool]

_WS = re.compile(r"\s+")


def normalize(text: str) -> str:
    """Case-fold and collapse whitespace."""
    return _WS.sub(" ", text.casefold()).strip()


def keywords(*words: str) -> Predicate:
    """Match any of the words or phrases as whole words."""
    compiled = [
        re.compile(r"(?<!\w)" + re.escape(w.casefold()) + r"(?!\w)")
        for w in words
    ]

    def _match(text: str) -> bool:
        return any(rx.search(text) for rx in compiled)

    return _match


def pattern(regex: str) -> Predicate:
    """Match a regular expression anywhere in the normalized text."""
    rx = re.compile(regex)

    def _match(text: str) -> bool:
        return rx.search(text) is not None

    return _match


def all_of(*predicates: Predicate) -> Predicate:
    def _match(text: str) -> bool:
        return all(p(text) for p in predicates)

    return _match


def any_of(*predicates: Predicate) -> Predicate:
    def _match(text: str) -> bool:
        return any(p(text) for p in predicates)

    return _match


@dataclass(frozen=True)
class Rule:
    tag: str
    predicate: Predicate


@dataclass(frozen=True)
class Vocabulary:
    """Ordered rules for one stage (or sub-check)."""

    name: str
    rules: tuple[Rule, ...]
    default: str

    @property
    def tags(self) -> list[str]:
        return [r.tag for r in self.rules] + [self.default]


def classify(text: str, vocabulary: Vocabulary) -> str:
    """Return the first matching tag, or the vocabulary's default."""
    normalized = normalize(text)
    for rule in vocabulary.rules:
        if rule.predicate(normalized):
            return rule.tag
    return vocabulary.default
