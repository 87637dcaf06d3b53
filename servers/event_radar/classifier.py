"""
Heuristic party classifier.

An event is a party when its text contains one high-confidence term, or at
least two terms from the broader list. A single generic word such as
"celebration" is not enough on its own.

The subcategory is resolved by SUBCATEGORY_RULES in order; the first rule
that matches wins. Day parties can also be detected from the start hour
alone (9:00-17:59).
"""

import re
from functools import lru_cache
from typing import Any, Optional

import structlog

from .errors import ClassificationError
from .models import Event, PartyClassification, PartySubcategory
from .normalize import parse_hour


logger = structlog.get_logger()

HIGH_CONFIDENCE_TERMS = (
    "party", "nightclub", "club night", "dance party", "rave", "dj set",
    "nightlife", "day party", "day-party", "pool party", "afterparty", "after-party",
)

BROAD_TERMS = (
    "celebration", "social", "mixer", "gathering", "gala", "reception",
    "festival", "meet-up", "meetup", "happy hour", "happy-hour", "mingle",
    "networking", "cocktail", "birthday", "anniversary", "graduation",
    "bachelor", "bachelorette", "dj", "dance night", "night out", "brunch",
    "rooftop", "lounge", "singles", "speed dating",
)

# Broad terms needed before an event counts as a party
BROAD_MATCH_MINIMUM = 2

DAY_PARTY_HOURS = range(9, 18)

# (subcategory, any-of terms, conjunctions)
# A conjunction is a tuple of alternative groups; every group needs a hit.
SUBCATEGORY_RULES: tuple[tuple[PartySubcategory, tuple[str, ...], tuple], ...] = (
    (
        PartySubcategory.DAY_PARTY,
        ("day party", "day-party", "pool party", "afternoon party", "daytime", "day club", "dayclub"),
        (),
    ),
    (
        PartySubcategory.BRUNCH,
        ("brunch",),
        ((("breakfast",), ("party",)),),
    ),
    (
        PartySubcategory.NIGHTCLUB,
        ("nightclub", "night club", "club night", "dance club", "disco", "rave"),
        ((("dj",), ("club", "venue")),),
    ),
    (
        PartySubcategory.NETWORKING,
        ("networking", "business mixer", "professional", "industry", "meetup", "meet-up"),
        (),
    ),
    (
        PartySubcategory.CELEBRATION,
        ("celebration", "birthday", "anniversary", "graduation", "wedding", "gala"),
        (),
    ),
    (
        PartySubcategory.SOCIAL,
        ("social", "mixer", "mingle", "meet and greet", "singles", "happy hour"),
        (),
    ),
    (
        PartySubcategory.FESTIVAL,
        ("festival", "fest", "fair", "carnival"),
        (),
    ),
    (
        PartySubcategory.ROOFTOP,
        ("rooftop", "roof top", "roof party"),
        (),
    ),
    (
        PartySubcategory.IMMERSIVE,
        ("immersive", "experience", "interactive"),
        (),
    ),
    (
        PartySubcategory.POPUP,
        ("popup", "pop-up", "pop up", "temporary"),
        (),
    ),
)


@lru_cache(maxsize=None)
def _term_pattern(term: str) -> re.Pattern:
    # Whole words only, plural "s" allowed ("raves", "parties" is not matched)
    return re.compile(r"(?<![a-z0-9])" + re.escape(term) + r"s?(?![a-z0-9])")


def contains_term(text: str, term: str) -> bool:
    """True if text contains term as a whole word or phrase."""
    return _term_pattern(term).search(text) is not None


def _as_text(value: Any, field: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ClassificationError(f"{field} must be a string, got {type(value).__name__}")
    return value


class PartyClassifier:
    """Classify events as parties and assign a subcategory."""

    def classify(
        self,
        title: Any,
        description: Any = "",
        time: Any = "",
    ) -> PartyClassification:
        """
        Classify a single event from its text and display time.

        Malformed input (non-string fields) yields the default
        classification: not a party, subcategory "general".
        """
        try:
            text = f"{_as_text(title, 'title')} {_as_text(description, 'description')}".lower()
            time_text = _as_text(time, "time")
        except ClassificationError as e:
            logger.debug("classification_input_rejected", error=str(e))
            return PartyClassification()

        return PartyClassification(
            is_party_event=self.is_party_text(text),
            subcategory=self.subcategory_for(text, parse_hour(time_text)),
        )

    def classify_event(self, event: Event) -> Event:
        """Return a copy of the event with the party fields filled in."""
        result = self.classify(event.title, event.description, event.time)
        return event.model_copy(
            update={
                "is_party_event": result.is_party_event,
                "party_subcategory": result.subcategory,
            }
        )

    @staticmethod
    def is_party_text(text: str) -> bool:
        """Apply the one-strong-or-two-broad rule to lowercase text."""
        if any(contains_term(text, term) for term in HIGH_CONFIDENCE_TERMS):
            return True

        broad_hits = sum(1 for term in BROAD_TERMS if contains_term(text, term))
        return broad_hits >= BROAD_MATCH_MINIMUM

    @staticmethod
    def subcategory_for(text: str, hour: Optional[int] = None) -> PartySubcategory:
        """Resolve the subcategory by rule priority."""
        for subcategory, terms, conjunctions in SUBCATEGORY_RULES:
            if any(contains_term(text, term) for term in terms):
                return subcategory

            for groups in conjunctions:
                if all(any(contains_term(text, term) for term in group) for group in groups):
                    return subcategory

            if subcategory == PartySubcategory.DAY_PARTY and hour in DAY_PARTY_HOURS:
                return subcategory

        return PartySubcategory.GENERAL
