"""
Regimen classification for free-text medication instructions.

Design Principles:
1. Classification is a pure function of the instruction text
2. Rules are data: an ordered table of (patterns, regimen type, reason)
3. First matching rule wins; order encodes tie-breaks between overlapping rules
4. Total: every string (empty, garbage, any Unicode) yields a classification
5. Ambiguity is never guessed: unclear end conditions classify as chronic

Rule order (significant):
1. Tapering          - several frequencies joined by "then", or taper language
2. Ambiguous end     - "until <condition> improves", "or until ...", ...
3. Specific duration - "for 7 days", "two more weeks", "finish all pills", ...
4. Default           - chronic (no timeline indicators)

Ambiguous-end language is checked before generic duration detection so that
"take 2 tablets until swelling resolves" is not read as short-term just
because it contains a number.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Pattern, Tuple, Union
import logging
import re

from medregimen.entities import MedicationRecord
from medregimen.extraction import WORD_NUMBER_PATTERN

logger = logging.getLogger(__name__)


class RegimenType(Enum):
    """Temporal shapes a regimen can take."""

    TAPERING = "tapering"
    # Several sequential phases at changing frequency

    SHORT_TERM = "short-term"
    # One phase with a known end

    CHRONIC = "chronic"
    # No determinable end; treated as ongoing


AMBIGUOUS_END_REASON = "ambiguous end condition"
DEFAULT_REASON = "no timeline indicators — assume ongoing"
NO_INPUT_REASON = "no instructions or structured frequency/duration"
STRUCTURED_DURATION_REASON = "structured duration field"


@dataclass(frozen=True)
class RegimenClassification:
    """
    Result of classifying an instruction string.

    Attributes:
        regimen_type: Which temporal shape applies
        reason: Which lexical rule fired, in plain words
        rule_name: Identifier of the rule table entry (None for record-level rules)
    """
    regimen_type: RegimenType
    reason: str
    rule_name: Optional[str] = None

    @property
    def has_timeline(self) -> bool:
        """Tapering and short-term regimens can be laid out on a calendar."""
        return self.regimen_type is not RegimenType.CHRONIC

    @property
    def show_progress(self) -> bool:
        return self.has_timeline

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict for JSON export."""
        return {
            "regimen_type": self.regimen_type.value,
            "reason": self.reason,
            "rule_name": self.rule_name,
            "has_timeline": self.has_timeline,
            "show_progress": self.show_progress
        }

    @staticmethod
    def chronic(reason: str, rule_name: Optional[str] = None) -> "RegimenClassification":
        """Factory for an open-ended regimen."""
        return RegimenClassification(RegimenType.CHRONIC, reason, rule_name)


@dataclass(frozen=True)
class LexicalRule:
    """
    One entry of the classification rule table.

    A rule fires if ANY of its patterns is found anywhere in the text.
    Patterns are compiled regexes or SequencePatterns (anything with search()).
    """
    name: str
    regimen_type: RegimenType
    reason: str
    patterns: Tuple[Union[Pattern, "SequencePattern"], ...]

    def matches(self, text: str) -> bool:
        return any(pattern.search(text) for pattern in self.patterns)

    def classification(self) -> RegimenClassification:
        return RegimenClassification(self.regimen_type, self.reason, self.name)


@dataclass(frozen=True)
class SequencePattern:
    """
    Sub-patterns that must occur in order, each searched from where the
    previous one matched.

    Plays the part of joining the steps with ".*" but stays linear in the
    text length. Exposes search() so it sits in a rule's pattern tuple
    next to compiled patterns.
    """
    steps: Tuple[Pattern, ...]

    def search(self, text: str) -> Optional["re.Match"]:
        match = None
        position = 0
        for step in self.steps:
            match = step.search(text, position)
            if match is None:
                return None
            position = match.end()
        return match


def _compile(*sources: str) -> Tuple[Pattern, ...]:
    return tuple(re.compile(source, re.IGNORECASE) for source in sources)


def _sequence(*sources: str) -> SequencePattern:
    return SequencePattern(_compile(*sources))


_MONTH_NAMES = (
    "january|february|march|april|may|june|july|august|"
    "september|october|november|december"
)
_UNITS = r"(?:days?|weeks?|months?)"


# A frequency mention such as "4 times daily" or "2x per day"; (?<!\d)
# starts it at the beginning of a digit run
_FREQUENCY = r"(?<!\d)\d+\s*(?:times?\s*)?(?:daily|per\s*day)"

# Free-text condition after "until"; bounded so each "until" scans a fixed window
_CONDITION = r"[\w\s]{1,200}"


TAPERING_RULE = LexicalRule(
    name="tapering",
    regimen_type=RegimenType.TAPERING,
    reason="contains specific tapering instructions",
    patterns=(
        # "4x daily for 1 week, then 3x daily for 1 week"
        _sequence(
            r"(?<!\d)\d+x?\s*(?:times?\s*)?(?:daily|per\s*day|a\s*day)\s*for\s*\d+\s*(?:week|wk)s?",
            r"then"
        ),
        # "1 drop 4 times daily for 1 week, then ..."
        _sequence(
            r"(?<!\d)\d+\s*drops?\s*\d+\s*times?\s*daily\s*for\s*\d+\s*(?:week|wk)s?",
            r"then"
        ),
        # "Apply 4x daily x 1 week, then ..."
        _sequence(r"(?<!\d)\d+x\s*daily\s*x\s*\d+\s*(?:week|wk)s?", r"then"),
        # "4 times per day for 7 days, then ..."
        _sequence(r"(?<!\d)\d+\s*times?\s*per\s*day\s*for\s*\d+\s*days?", r"then"),
        # Two frequency mentions joined by "then"
        _sequence(_FREQUENCY, r"then", _FREQUENCY),
        *_compile(r"taper|reduce|decrease|step.?down|wean|gradually"),
        # "start with 4 ..., then 2 ..."
        _sequence(r"(?:start|begin)\s+(?:with\s+)?\d", r"reduce|decrease|then\s+\d"),
    )
)

AMBIGUOUS_END_RULE = LexicalRule(
    name="ambiguous_end",
    regimen_type=RegimenType.CHRONIC,
    reason=AMBIGUOUS_END_REASON,
    patterns=_compile(
        rf"until\s+(?:we\s+see\s+)?(?:your\s+)?{_CONDITION}\s+"
        r"(?:improve|resolve|normalize|stabilize|clear|heal|get\s+better|go\s+away|disappear|subside)",
        rf"until\s+(?:we\s+see\s+)?(?:your\s+)?{_CONDITION}\s+is\s+"
        r"(?:normal|stable|controlled|clear|healed|better|gone)",
        r"until\s+(?:we\s+see\s+)?(?:no\s+more\s+|there\s+are\s+no\s+more\s+)[\w\s]+",
        rf"until\s+(?:the\s+)?{_CONDITION}\s+(?:stops?|ends?|goes\s+away|disappears?)",
        r"until\s+you\s+feel\s+(?:better|normal|fine|good|well)",
        r"until\s+(?:further\s+)?(?:notice|evaluation|assessment|review|follow.?up)",
        r"or\s+until\s+[\w\s]+",
    )
)

SPECIFIC_DURATION_RULE = LexicalRule(
    name="specific_duration",
    regimen_type=RegimenType.SHORT_TERM,
    reason="contains specific duration",
    patterns=_compile(
        rf"(?:for\s+)?(?:exactly\s+|the\s+next\s+|another\s+)?(?<!\d)\d+\s+{_UNITS}",
        rf"(?:for\s+)?(?:exactly\s+|the\s+next\s+|another\s+)?\b(?:{WORD_NUMBER_PATTERN})\s+(?:more\s+)?{_UNITS}",
        rf"(?<!\d)\d+\s+more\s+{_UNITS}",
        r"complete\s+(?:the\s+)?(?:full\s+)?course",
        r"finish\s+(?:all\s+)?(?:the\s+)?(?:pills?|tablets?|medication)",
        rf"until\s+(?:{_MONTH_NAMES})",
        r"until\s+\d+/\d+",
        r"for\s+\d+\s+(?:days?|weeks?)\s+(?:after|following|post)",
    )
)

# Evaluated top to bottom; the first rule that matches decides.
CLASSIFICATION_RULES: Tuple[LexicalRule, ...] = (
    TAPERING_RULE,
    AMBIGUOUS_END_RULE,
    SPECIFIC_DURATION_RULE,
)


def matching_rule(instructions: str) -> Optional[LexicalRule]:
    """Return the first rule in table order that matches, or None."""
    text = instructions or ""
    for rule in CLASSIFICATION_RULES:
        if rule.matches(text):
            return rule
    return None


def classify(instructions: str) -> RegimenClassification:
    """
    Classify a free-text instruction string.

    Args:
        instructions: Clinician instruction text (None and "" are allowed)

    Returns:
        RegimenClassification; never raises
    """
    rule = matching_rule(instructions)
    if rule is None:
        logger.debug("No classification rule matched, defaulting to chronic")
        return RegimenClassification.chronic(DEFAULT_REASON, "default")

    logger.debug(f"Classification rule '{rule.name}' fired -> {rule.regimen_type.value}")
    return rule.classification()


def classify_record(record: MedicationRecord) -> RegimenClassification:
    """
    Classify a stored medication, consulting structured fields when the
    instruction text is empty.

    - Text present: classify(text)
    - No text, no structured frequency/duration: chronic
    - No text, structured duration present: short-term
    - No text, structured frequency only: classify("") (chronic)
    """
    text = record.instructions
    if text.strip():
        return classify(text)

    if not record.has_structured_schedule:
        logger.debug(f"Medication '{record.name}' has no instructions or structured schedule")
        return RegimenClassification.chronic(NO_INPUT_REASON, "no_input")

    if (record.duration or "").strip():
        return RegimenClassification(
            RegimenType.SHORT_TERM,
            STRUCTURED_DURATION_REASON,
            "structured_duration"
        )

    return classify(text)
