"""
Keyword responder: picks a canned concierge reply for an utterance.

The canned response set is an ordered list of rules. Each rule has a regex
tested against the lowercased utterance; the first rule that matches wins.
A rule may carry refinements (narrower patterns checked in order inside the
winning rule) that swap in a more specific reply. No rule matching means a
fallback reply.

Rule sets are stored as YAML (JSON also works, PyYAML's safe_load reads both)
under concierge_api/rule_sets/.
"""

from __future__ import annotations

import os
import random
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import yaml

from logging_setup import get_logger, Component
from .config import DEFAULT_RULE_SET


logger = get_logger(Component.RESPONDER)

FALLBACK_INTENT = "fallback"

# Used when no rule set file can be found at all
BUILTIN_FALLBACK_REPLIES = (
    "I'd be happy to help you with that. Could you provide a bit more detail about what you're looking for?",
    "I'm here to assist with reservations, hotel amenities, dining, and any other questions. What specifically would you like to know?",
    "Let me help you with that. Are you asking about our rooms, facilities, or would you like to make a reservation?",
    "I want to make sure I give you the best information. Could you tell me more about what you need?",
)


@dataclass(frozen=True)
class Refinement:
    """A narrower pattern inside a rule with its own replies."""

    pattern: re.Pattern[str]
    replies: Tuple[str, ...]


@dataclass(frozen=True)
class Rule:
    """One entry of the canned response set."""

    intent: str
    pattern: re.Pattern[str]
    replies: Tuple[str, ...]
    refinements: Tuple[Refinement, ...] = ()

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None

    def candidates(self, text: str) -> Tuple[str, ...]:
        """Replies for an utterance this rule already matched."""
        for refinement in self.refinements:
            if refinement.pattern.search(text):
                return refinement.replies
        return self.replies


@dataclass(frozen=True)
class Reply:
    """The responder's answer for one utterance."""

    intent: str
    text: str


class Responder:
    """First-match-wins dispatcher over a canned response set."""

    def __init__(
        self,
        rules: Sequence[Rule],
        fallback: Sequence[str],
        rng: Optional[random.Random] = None,
        name: str = "custom",
    ):
        if not fallback:
            raise ValueError("fallback replies must not be empty")
        self.rules: Tuple[Rule, ...] = tuple(rules)
        self.fallback: Tuple[str, ...] = tuple(fallback)
        self.name = name
        self._rng = rng or random.Random()

    def classify(self, utterance: str) -> Optional[Rule]:
        """Return the first rule matching the utterance, or None."""
        text = utterance.lower()
        for rule in self.rules:
            if rule.matches(text):
                return rule
        return None

    def respond(
        self,
        utterance: str,
        history: Optional[Sequence[Any]] = None,
    ) -> Reply:
        """
        Pick a reply for the utterance.

        history is accepted so callers can pass the conversation so far;
        classification does not look at it.
        """
        text = utterance.lower()
        rule = self.classify(text)
        if rule is None:
            logger.debug("No rule matched", rule_set=self.name)
            return Reply(intent=FALLBACK_INTENT, text=self._rng.choice(self.fallback))

        logger.debug("Rule matched", rule_set=self.name, intent=rule.intent)
        return Reply(intent=rule.intent, text=self._rng.choice(rule.candidates(text)))


def _compile(pattern: Any, where: str) -> re.Pattern[str]:
    if not isinstance(pattern, str) or not pattern:
        raise ValueError(f"{where}: pattern must be a non-empty string")
    try:
        return re.compile(pattern, re.ASCII)
    except re.error as e:
        raise ValueError(f"{where}: invalid pattern {pattern!r}: {e}") from e


def _replies(value: Any, where: str) -> Tuple[str, ...]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list) or not value or not all(isinstance(v, str) and v for v in value):
        raise ValueError(f"{where}: replies must be a non-empty list of strings")
    return tuple(value)


def parse_rule_set(data: Dict[str, Any]) -> Tuple[List[Rule], Tuple[str, ...]]:
    """
    Turn a loaded rule set mapping into compiled rules and fallback replies.

    Raises ValueError with the offending rule index on malformed entries.
    """
    raw_rules = data.get("rules") or []
    if not isinstance(raw_rules, list):
        raise ValueError("rules must be a list")

    rules: List[Rule] = []
    for i, raw in enumerate(raw_rules):
        where = f"rules[{i}]"
        if not isinstance(raw, dict):
            raise ValueError(f"{where}: must be a mapping")
        intent = raw.get("intent")
        if not isinstance(intent, str) or not intent:
            raise ValueError(f"{where}: intent is required")

        refinements = []
        for j, raw_ref in enumerate(raw.get("refinements") or []):
            ref_where = f"{where}.refinements[{j}]"
            if not isinstance(raw_ref, dict):
                raise ValueError(f"{ref_where}: must be a mapping")
            refinements.append(Refinement(
                pattern=_compile(raw_ref.get("pattern"), ref_where),
                replies=_replies(raw_ref.get("replies"), ref_where),
            ))

        rules.append(Rule(
            intent=intent,
            pattern=_compile(raw.get("pattern"), where),
            replies=_replies(raw.get("replies"), where),
            refinements=tuple(refinements),
        ))

    fallback = _replies(data.get("fallback") or list(BUILTIN_FALLBACK_REPLIES), "fallback")
    return rules, fallback


def _get_rule_sets_dir() -> Path:
    return Path(__file__).parent / "rule_sets"


def _load_file(path: Path) -> Dict[str, Any]:
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Rule set file {path} must contain a mapping at top-level")
    return data


def load_rule_set(name: str) -> Dict[str, Any]:
    """
    Load a canned response set by name.

    Resolution order:
    1) <name>.yaml / <name>.yml / <name>.json
    2) the default rule set under the same extensions
    3) built-in set with no rules and the generic fallback replies
    """
    rule_sets_dir = _get_rule_sets_dir()

    for base in (name, DEFAULT_RULE_SET):
        for ext in (".yaml", ".yml", ".json"):
            candidate = rule_sets_dir / f"{base}{ext}"
            if candidate.exists():
                if base != name:
                    logger.warning("Rule set not found, using default", requested=name, rule_set=base)
                return _load_file(candidate)

    logger.warning("No rule set files found, using built-in fallback replies", requested=name)
    return {
        "name": "builtin",
        "rules": [],
        "fallback": list(BUILTIN_FALLBACK_REPLIES),
    }


def build_responder(name: Optional[str] = None, rng: Optional[random.Random] = None) -> Responder:
    """
    Build a Responder from a named rule set.

    Priority for the name: argument, CONCIERGE_RULE_SET, the default set.
    """
    rule_set_name = name or os.getenv("CONCIERGE_RULE_SET", DEFAULT_RULE_SET)
    data = load_rule_set(rule_set_name)
    rules, fallback = parse_rule_set(data)
    responder = Responder(rules, fallback, rng=rng, name=data.get("name", rule_set_name))
    logger.info("Responder ready", rule_set=responder.name, rules=len(responder.rules))
    return responder

