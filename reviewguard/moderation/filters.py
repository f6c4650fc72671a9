"""Content classifiers for review text: profanity and personal data.

Both classifiers are pure.  Their word lists and patterns live in an
immutable :class:`FilterConfig` handed to them at construction, so two
classifiers built from the same config always agree.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from enum import Enum
from functools import lru_cache
from itertools import groupby
from pathlib import Path
from typing import Iterable, Optional

import nltk
import yaml
from nltk.tokenize import RegexpTokenizer
from nltk.tree import Tree

from reviewguard.moderation.models import ClassifierVerdict

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Word lists
# ---------------------------------------------------------------------------

# General profanity / slurs (curated, small but representative)
BASE_PROFANITY: frozenset[str] = frozenset({
    "arse", "arsehole", "ass", "asshole", "bastard", "bitch", "bollocks",
    "bullshit", "crap", "cunt", "damn", "dick", "dickhead", "douche",
    "fag", "faggot", "fuck", "fucked", "fucker", "fucking", "goddamn",
    "jackass", "kike", "motherfucker", "nigga", "nigger", "piss", "prick",
    "pussy", "retard", "shit", "shitty", "slut", "spic", "twat", "wanker",
    "whore", "chink", "kys", "kill yourself",
})

# Accusations that are not publishable without review on a broker site
DOMAIN_TERMS: frozenset[str] = frozenset({
    "scam", "fraud", "ponzi", "pyramid", "steal", "thief", "criminal",
})

# Brokers whose names read like a person's, never redacted as names
KNOWN_BROKERS: frozenset[str] = frozenset({
    "Charles Schwab", "Interactive Brokers", "Fidelity", "Vanguard",
    "Robinhood", "eToro", "DEGIRO", "Saxo Bank", "TD Ameritrade",
    "E*TRADE", "Merrill Edge", "Webull", "Trading 212", "Plus500",
    "Edward Jones", "Raymond James", "Charles Stanley", "Hargreaves Lansdown",
})


class NameDetection(str, Enum):
    """How eagerly capitalized words are treated as person names."""

    OFF = "off"
    CONSERVATIVE = "conservative"  # honorific + name only
    BALANCED = "balanced"  # + nltk PERSON entities and known given names
    AGGRESSIVE = "aggressive"  # + any capitalized run mid-sentence


@dataclass(frozen=True)
class FilterConfig:
    """Immutable word lists and markers shared by the classifiers."""

    banned_words: frozenset[str] = field(default_factory=lambda: BASE_PROFANITY | DOMAIN_TERMS)
    mask_char: str = "*"
    redaction_marker: str = "[REDACTED]"
    name_marker: str = "[NAME]"
    name_detection: NameDetection = NameDetection.BALANCED
    allowed_names: frozenset[str] = KNOWN_BROKERS

    def with_words(
        self, extra: Iterable[str] = (), allowed: Iterable[str] = ()
    ) -> FilterConfig:
        """Return a copy with *extra* words banned and *allowed* words removed."""
        words = (self.banned_words | {w.lower() for w in extra}) - {w.lower() for w in allowed}
        return replace(self, banned_words=frozenset(words))

    @classmethod
    def from_yaml(cls, path: str | Path) -> FilterConfig:
        """Build a config from a YAML file layered over the defaults.

        Recognised keys: ``extra_words``, ``allowed_words``,
        ``allowed_names``, ``name_detection`` and ``mask_char``.
        """
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Filter config {path} must be a mapping")

        config = cls()
        if "name_detection" in data:
            config = replace(config, name_detection=NameDetection(data["name_detection"]))
        if "mask_char" in data:
            config = replace(config, mask_char=str(data["mask_char"]))
        if data.get("allowed_names"):
            config = replace(
                config, allowed_names=config.allowed_names | frozenset(data["allowed_names"])
            )
        return config.with_words(
            extra=data.get("extra_words") or (),
            allowed=data.get("allowed_words") or (),
        )


# ---------------------------------------------------------------------------
# Profanity
# ---------------------------------------------------------------------------


class ProfanityClassifier:
    """Flags and masks banned words on word boundaries, ignoring case."""

    def __init__(self, config: Optional[FilterConfig] = None) -> None:
        self.config = config or FilterConfig()
        # Longest first so phrases win over their leading word
        words = sorted(self.config.banned_words, key=len, reverse=True)
        alternation = "|".join(re.escape(w).replace(r"\ ", r"\s+") for w in words)
        self._pattern: Optional[re.Pattern[str]] = (
            re.compile(rf"\b(?:{alternation})\b", re.IGNORECASE) if words else None
        )

    def _mask(self, match: re.Match[str]) -> str:
        return self.config.mask_char * len(match.group(0))

    def classify(self, text: str) -> ClassifierVerdict:
        if self._pattern is None or not self._pattern.search(text):
            return ClassifierVerdict(flagged=False, cleaned_text=text)
        return ClassifierVerdict(
            flagged=True,
            categories=("profanity",),
            cleaned_text=self._pattern.sub(self._mask, text),
        )




# ---------------------------------------------------------------------------
# Personal data
# ---------------------------------------------------------------------------


def email_pattern(mask_char: str = "*") -> re.Pattern[str]:
    """Email addresses, including ones partly masked by the profanity filter."""
    masked = re.escape(mask_char)
    local = rf"[A-Za-z0-9._%+{masked}-]"
    return re.compile(rf"(?<!{local}){local}+@[A-Za-z0-9.{masked}-]+\.[A-Za-z]{{2,}}\b")


# Applied in order after the email pattern, on progressively redacted text,
# longest shapes first, so a card number is not also reported as a phone number.
PII_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("credit_card", re.compile(r"\b(?:\d{4}[-\s]?){3}\d{1,4}\b")),
    ("ssn", re.compile(r"\b\d{3}-?\d{2}-?\d{4}\b")),
    ("phone", re.compile(
        r"(?<![\w+])(?:\+?1[-.\s]?)?(?:\(\d{3}\)|\d{3})[-.\s]?\d{3}[-.\s]?\d{4}\b"
    )),
    ("address", re.compile(
        r"\b\d{1,6}\s+(?:[A-Za-z0-9]+\s+){1,5}"
        r"(?:Street|St|Avenue|Ave|Road|Rd|Boulevard|Blvd|Lane|Ln|Drive|Dr)\b\.?",
        re.IGNORECASE,
    )),
)

_HONORIFIC_RE = re.compile(
    r"\b(?:Mr|Mrs|Ms|Miss|Mx|Dr|Prof|Sir|Madam)\.?\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+)?)"
)

# Common given names that are rarely ordinary English words
_GIVEN_NAMES: frozenset[str] = frozenset({
    "Aaron", "Adam", "Alex", "Alice", "Amanda", "Andrew", "Anna", "Anthony",
    "Ashley", "Brian", "Carlos", "Charles", "Chris", "Christopher", "Daniel",
    "David", "Elizabeth", "Emily", "Emma", "Eric", "James", "Jane", "Jason",
    "Jennifer", "Jessica", "John", "Joseph", "Karen", "Kevin", "Laura",
    "Linda", "Lisa", "Maria", "Mary", "Matthew", "Michael", "Michelle",
    "Nicole", "Olivia", "Paul", "Peter", "Rachel", "Richard", "Robert",
    "Ryan", "Sarah", "Steven", "Susan", "Thomas", "Victoria", "William",
})
_GIVEN_NAME_RE = re.compile(
    r"\b(?:" + "|".join(sorted(_GIVEN_NAMES)) + r")(?:\s+[A-Z][a-z]+)?\b"
)

_CAPITALIZED_RUN_RE = re.compile(r"\b[A-Z][a-z]+(?:\s+[A-Z][a-z]+){1,2}\b")
_SENTENCE_START_RE = re.compile(r"(?:^|[.!?]\s+|\n)\s*$")
_NOT_NAMES: frozenset[str] = frozenset({
    "I", "The", "This", "That", "My", "Their", "They", "We", "Our", "It",
    "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday",
    "Sunday", "January", "February", "March", "April", "May", "June", "July",
    "August", "September", "October", "November", "December",
})

# (resource path, downloader package) pairs needed by pos_tag and ne_chunk
_NLTK_DATA: tuple[tuple[str, str], ...] = (
    ("taggers/averaged_perceptron_tagger_eng", "averaged_perceptron_tagger_eng"),
    ("chunkers/maxent_ne_chunker_tab", "maxent_ne_chunker_tab"),
    ("corpora/words", "words"),
)
_TOKENIZER = RegexpTokenizer(r"\w+(?:['’-]\w+)*|[^\w\s]")
_PROPER_NOUN_TAGS = frozenset({"NNP", "NNPS"})

Span = tuple[int, int]


@lru_cache(maxsize=None)
def ensure_nltk_data() -> None:
    """Fetch the tagger and entity chunker models into ``nltk_data`` on first use."""
    for resource, package in _NLTK_DATA:
        try:
            nltk.data.find(resource)
        except LookupError:
            logger.info("Downloading nltk resource %s", package)
            if not nltk.download(package, quiet=True):
                raise LookupError(f"nltk resource {package!r} is not available")


def _person_spans(text: str) -> list[Span]:
    """Proper-noun runs that nltk's entity chunker tags, at least in part, as PERSON.

    The chunker often splits a full name across labels (``Kofi`` as GPE,
    ``Mensah`` as PERSON), so the whole run of adjacent proper nouns is taken.
    """
    spans = list(_TOKENIZER.span_tokenize(text))
    if not spans:
        return []
    tagged = nltk.pos_tag([text[start:end] for start, end in spans])

    people: set[int] = set()
    i = 0
    for node in nltk.ne_chunk(tagged):
        if isinstance(node, Tree):
            width = len(node.leaves())
            if node.label() == "PERSON":
                people.update(range(i, i + width))
            i += width
        else:
            i += 1

    found: list[Span] = []
    for proper, group in groupby(
        range(len(tagged)),
        key=lambda k: tagged[k][1] in _PROPER_NOUN_TAGS or k in people,
    ):
        run = list(group)
        if proper and people.intersection(run):
            found.append((spans[run[0]][0], spans[run[-1]][1]))
    return found


def _phrases_re(phrases: Iterable[str], bounded: bool = True) -> Optional[re.Pattern[str]]:
    words = sorted({p for p in phrases if p}, key=len, reverse=True)
    if not words:
        return None
    alternation = "|".join(re.escape(w) for w in words)
    return re.compile(rf"\b(?:{alternation})\b" if bounded else alternation, re.IGNORECASE)


def _overlaps(a: Span, b: Span) -> bool:
    return a[0] < b[1] and b[0] < a[1]


def _merge(spans: Iterable[Span]) -> list[Span]:
    merged: list[Span] = []
    for start, end in sorted(spans):
        if merged and start <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(end, merged[-1][1]))
        else:
            merged.append((start, end))
    return merged


class NameDetector:
    """Person-name extraction.

    ``conservative`` trusts honorifics only.  ``balanced`` adds nltk's
    named-entity chunker and a short list of given names, and ``aggressive``
    also takes any title-case run that does not open a sentence.  Phrases in
    *allowed* (broker and product names) are never reported as people.
    """

    def __init__(
        self,
        level: NameDetection = NameDetection.BALANCED,
        allowed: Iterable[str] = (),
    ) -> None:
        self.level = NameDetection(level)
        self.allowed = frozenset(allowed)
        self._allowed_re = _phrases_re(self.allowed)
        if self.level in (NameDetection.BALANCED, NameDetection.AGGRESSIVE):
            ensure_nltk_data()

    def spans(self, text: str, protected: Iterable[str] = ()) -> list[Span]:
        """Return merged ``(start, end)`` spans of every name mention in *text*.

        Spans touching an allowed phrase or one of the *protected* literals
        (redaction markers) are dropped.  Every further mention of a found
        name, in any case, is included too.
        """
        if self.level is NameDetection.OFF:
            return []

        found: list[Span] = [m.span(1) for m in _HONORIFIC_RE.finditer(text)]
        if self.level in (NameDetection.BALANCED, NameDetection.AGGRESSIVE):
            found += [m.span() for m in _GIVEN_NAME_RE.finditer(text)]
            found += _person_spans(text)
        if self.level is NameDetection.AGGRESSIVE:
            for m in _CAPITALIZED_RUN_RE.finditer(text):
                if _SENTENCE_START_RE.search(text[: m.start()]):
                    continue
                if any(word in _NOT_NAMES for word in m.group(0).split()):
                    continue
                found.append(m.span())

        blocked: list[Span] = []
        for pattern in (self._allowed_re, _phrases_re(protected, bounded=False)):
            if pattern is not None:
                blocked += [m.span() for m in pattern.finditer(text)]

        kept = [s for s in found if not any(_overlaps(s, b) for b in blocked)]
        for name in {text[start:end] for start, end in kept}:
            for m in re.finditer(rf"\b{re.escape(name)}\b", text, re.IGNORECASE):
                if not any(_overlaps(m.span(), b) for b in blocked):
                    kept.append(m.span())
        return _merge(kept)

    def detect(self, text: str) -> list[str]:
        """Return distinct names found in *text*, in order of appearance."""
        names: list[str] = []
        for start, end in self.spans(text):
            name = text[start:end]
            if name.lower() not in (n.lower() for n in names):
                names.append(name)
        return names


class PIIClassifier:
    """Flags and redacts contact details, identifiers, and person names."""

    def __init__(self, config: Optional[FilterConfig] = None) -> None:
        self.config = config or FilterConfig()
        self.patterns = (("email", email_pattern(self.config.mask_char)),) + PII_PATTERNS
        self.names = NameDetector(self.config.name_detection, self.config.allowed_names)

    def classify(self, text: str) -> ClassifierVerdict:
        categories: list[str] = []
        cleaned = text

        for category, pattern in self.patterns:
            if pattern.search(cleaned):
                categories.append(category)
                cleaned = pattern.sub(self.config.redaction_marker, cleaned)

        people = self.names.spans(
            cleaned, protected=(self.config.redaction_marker, self.config.name_marker)
        )
        if people:
            categories.append("names")
            for start, end in reversed(people):
                cleaned = cleaned[:start] + self.config.name_marker + cleaned[end:]

        return ClassifierVerdict(
            flagged=bool(categories),
            categories=tuple(categories),
            cleaned_text=cleaned,
        )
