"""Ignore rules that suppress known-benign drift.

Rules come from a JSON file shaped like::

    {"ignorePatterns": {
        "description": "...",
        "resources": [{"resourceType": "Microsoft.Web/*", "reason": "...",
                       "ignoredProperties": ["properties.siteConfig.*"],
                       "conditions": {"skuTier": "Basic"}}],
        "globalPatterns": [{"propertyPattern": "properties.*Time*", "reason": "..."}]}}

Patterns are case-insensitive and ``*`` matches any run of characters.
Every pattern is compiled once when the rule set is built. Rule conditions
are kept as metadata only; they are not evaluated against live values.
"""

import json
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from bicepdrift.aggregator import build_result
from bicepdrift.models import DriftDetectionResult, PropertyDrift, RuleUsage

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = "drift-ignore.json"

# Template functions whose unevaluated form can show up opposite its resolved value.
EXPRESSION_FUNCTIONS = (
    "parameters",
    "variables",
    "reference",
    "concat",
    "format",
    "subscription",
    "resourceGroup",
    "resourceId",
    "uniqueString",
    "createObject",
    "createArray",
    "union",
    "coalesce",
    "if",
)


@dataclass(frozen=True)
class WildcardPattern:
    """A ``*`` wildcard pattern compiled to an anchored, case-insensitive regex."""

    pattern: str
    regex: re.Pattern[str] | None

    def matches(self, value: str) -> bool:
        return self.regex is not None and self.regex.fullmatch(value) is not None


def compile_pattern(pattern: Any) -> WildcardPattern:
    """Compile a wildcard pattern; invalid patterns never match."""
    if not isinstance(pattern, str) or not pattern:
        logger.warning("Invalid ignore pattern %r, rule will never match", pattern)
        return WildcardPattern(str(pattern), None)
    try:
        regex = re.compile(re.escape(pattern).replace(r"\*", ".*"), re.IGNORECASE)
    except re.error as e:
        logger.warning("Could not compile ignore pattern %r: %s", pattern, e)
        return WildcardPattern(pattern, None)
    return WildcardPattern(pattern, regex)


@dataclass(frozen=True)
class GlobalIgnoreRule:
    """Suppresses a property path on every resource type."""

    property_pattern: str
    reason: str = ""
    matcher: WildcardPattern = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "matcher", compile_pattern(self.property_pattern))

    @property
    def rule_id(self) -> str:
        return f"global:{self.property_pattern}"


@dataclass(frozen=True)
class ResourceIgnoreRule:
    """Suppresses a list of property paths on matching resource types."""

    resource_type_pattern: str
    reason: str = ""
    ignored_properties: tuple[str, ...] = ()
    conditions: dict[str, Any] = field(default_factory=dict)
    type_matcher: WildcardPattern = field(init=False, repr=False, compare=False)
    property_matchers: tuple[WildcardPattern, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "type_matcher", compile_pattern(self.resource_type_pattern))
        object.__setattr__(
            self,
            "property_matchers",
            tuple(compile_pattern(p) for p in self.ignored_properties),
        )

    def rule_id(self, property_pattern: str) -> str:
        return f"resource:{self.resource_type_pattern}:{property_pattern}"

    @property
    def rule_ids(self) -> list[str]:
        return [self.rule_id(p) for p in self.ignored_properties]


def _lookup(mapping: Mapping[str, Any], key: str, default: Any = None) -> Any:
    """Case-insensitive key lookup, matching how config files are written by hand."""
    if key in mapping:
        return mapping[key]
    lowered = key.lower()
    for name, value in mapping.items():
        if isinstance(name, str) and name.lower() == lowered:
            return value
    return default


@dataclass(frozen=True)
class IgnoreRuleSet:
    """Parsed ignore configuration."""

    global_rules: tuple[GlobalIgnoreRule, ...] = ()
    resource_rules: tuple[ResourceIgnoreRule, ...] = ()
    description: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> "IgnoreRuleSet":
        """Build a rule set from the parsed JSON document.

        Raises ValueError when the document is not shaped like an ignore config.
        Individual malformed rule entries are skipped.
        """
        if not isinstance(data, Mapping):
            raise ValueError("ignore configuration must be a JSON object")
        patterns = _lookup(data, "ignorePatterns", {})
        if not isinstance(patterns, Mapping):
            raise ValueError("'ignorePatterns' must be a JSON object")

        global_rules = []
        for entry in _lookup(patterns, "globalPatterns", None) or []:
            if not isinstance(entry, Mapping):
                logger.warning("Skipping malformed global pattern: %r", entry)
                continue
            global_rules.append(
                GlobalIgnoreRule(
                    property_pattern=_lookup(entry, "propertyPattern"),
                    reason=_lookup(entry, "reason", "") or "",
                )
            )

        resource_rules = []
        for entry in _lookup(patterns, "resources", None) or []:
            if not isinstance(entry, Mapping):
                logger.warning("Skipping malformed resource rule: %r", entry)
                continue
            resource_type = _lookup(entry, "resourceType")
            if not isinstance(resource_type, str) or not resource_type:
                logger.warning("Skipping resource rule without a resourceType: %r", entry)
                continue
            properties = _lookup(entry, "ignoredProperties", None) or []
            if not isinstance(properties, list):
                properties = []
            for prop in properties:
                if not isinstance(prop, str):
                    logger.warning("Skipping non-string ignored property %r on %s", prop, resource_type)
            conditions = _lookup(entry, "conditions", None) or {}
            resource_rules.append(
                ResourceIgnoreRule(
                    resource_type_pattern=resource_type,
                    reason=_lookup(entry, "reason", "") or "",
                    ignored_properties=tuple(p for p in properties if isinstance(p, str)),
                    conditions=dict(conditions) if isinstance(conditions, Mapping) else {},
                )
            )

        return cls(
            global_rules=tuple(global_rules),
            resource_rules=tuple(resource_rules),
            description=_lookup(patterns, "description", "") or "",
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "ignorePatterns": {
                "description": self.description,
                "resources": [
                    {
                        "resourceType": rule.resource_type_pattern,
                        "reason": rule.reason,
                        "ignoredProperties": list(rule.ignored_properties),
                        "conditions": dict(rule.conditions),
                    }
                    for rule in self.resource_rules
                ],
                "globalPatterns": [
                    {"propertyPattern": rule.property_pattern, "reason": rule.reason}
                    for rule in self.global_rules
                ],
            }
        }

    def rule_ids(self) -> list[str]:
        """Identities of every configured rule, in evaluation order."""
        ids = [rule.rule_id for rule in self.global_rules]
        for rule in self.resource_rules:
            ids.extend(rule.rule_ids)
        return ids

    def add_rule(self, resource_type: str, property_path: str, reason: str) -> "IgnoreRuleSet":
        """Return a copy with ``property_path`` ignored for ``resource_type``.

        Extends the first rule whose resource type equals ``resource_type``
        (ignoring case), or appends a new rule.
        """
        rules = list(self.resource_rules)
        for i, rule in enumerate(rules):
            if rule.resource_type_pattern.lower() != resource_type.lower():
                continue
            if property_path.lower() in (p.lower() for p in rule.ignored_properties):
                return self
            rules[i] = ResourceIgnoreRule(
                resource_type_pattern=rule.resource_type_pattern,
                reason=rule.reason,
                ignored_properties=rule.ignored_properties + (property_path,),
                conditions=rule.conditions,
            )
            return replace(self, resource_rules=tuple(rules))

        rules.append(
            ResourceIgnoreRule(
                resource_type_pattern=resource_type,
                reason=reason,
                ignored_properties=(property_path,),
            )
        )
        return replace(self, resource_rules=tuple(rules))


def load_ignore_config(path: str | Path | None = None) -> IgnoreRuleSet:
    """Load ignore rules from ``path`` (default ``./drift-ignore.json``).

    Any problem reading or parsing the file yields an empty rule set, so a
    broken config reports more drift rather than hiding it.
    """
    config_path = Path(path) if path else Path.cwd() / DEFAULT_CONFIG_NAME
    if not config_path.exists():
        logger.warning("No ignore configuration found at %s", config_path)
        return IgnoreRuleSet()

    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
        rules = IgnoreRuleSet.from_dict(data)
    except json.JSONDecodeError as e:
        logger.warning("Invalid JSON in ignore configuration %s: %s", config_path, e)
        return IgnoreRuleSet()
    except (OSError, ValueError) as e:
        logger.warning("Failed to load ignore configuration %s: %s", config_path, e)
        return IgnoreRuleSet()

    logger.info(
        "Loaded ignore configuration with %d resource rule(s) and %d global pattern(s)",
        len(rules.resource_rules),
        len(rules.global_rules),
    )
    return rules


def save_ignore_config(rules: IgnoreRuleSet, path: str | Path | None = None) -> Path:
    """Write ``rules`` as JSON and return the path written."""
    config_path = Path(path) if path else Path.cwd() / DEFAULT_CONFIG_NAME
    config_path.write_text(json.dumps(rules.to_dict(), indent=2) + "\n", encoding="utf-8")
    logger.info("Saved ignore configuration to %s", config_path)
    return config_path


@dataclass(frozen=True)
class SuppressionDecision:
    """Verdict for one drift record, with the rule that produced it."""

    suppressed: bool
    reason: str = ""
    rule_id: str | None = None


KEEP = SuppressionDecision(suppressed=False)


def is_unresolved_expression(value: str) -> bool:
    """Whether ``value`` is an unevaluated template expression like ``[parameters('x')]``."""
    text = value.strip()
    if not (text.startswith("[") and text.endswith("]")):
        return False
    return any(text.startswith(f"[{name}(") for name in EXPRESSION_FUNCTIONS)


def should_suppress(
    resource_type: str, drift: PropertyDrift, rules: IgnoreRuleSet
) -> SuppressionDecision:
    """Decide whether ``drift`` on a ``resource_type`` resource should be hidden.

    Checks run in a fixed order and the first match wins: blank container
    artifacts, unresolved template expressions, global patterns, then
    resource-specific rules.
    """
    if not drift.expected_value.strip() and not drift.actual_value.strip():
        return SuppressionDecision(True, "structural container artifact")

    # Assumes the referenced parameters/variables have not changed since the
    # last deployment; a changed parameter is hidden here too.
    if is_unresolved_expression(drift.expected_value):
        return SuppressionDecision(True, "unresolved template expression")

    for rule in rules.global_rules:
        if rule.matcher.matches(drift.property_path):
            return SuppressionDecision(True, rule.reason or rule.property_pattern, rule.rule_id)

    for rule in rules.resource_rules:
        if not rule.type_matcher.matches(resource_type):
            continue
        if rule.conditions:
            logger.debug(
                "Conditions %s on rule %s are not evaluated",
                rule.conditions,
                rule.resource_type_pattern,
            )
        for pattern, matcher in zip(rule.ignored_properties, rule.property_matchers):
            if matcher.matches(drift.property_path):
                return SuppressionDecision(
                    True, rule.reason or rule.resource_type_pattern, rule.rule_id(pattern)
                )

    return KEEP


@dataclass(frozen=True)
class FilterOutcome:
    """A filtered result together with the rules that fired while producing it."""

    result: DriftDetectionResult
    usage: RuleUsage


def filter_drifts(
    result: DriftDetectionResult, rules: IgnoreRuleSet, audit: bool = False
) -> FilterOutcome:
    """Apply ``rules`` to ``result`` and return a new, reduced result.

    Resources that lose every property drift are dropped. With ``audit`` set,
    each suppression is logged with the reason of the rule that fired.
    """
    matched: set[str] = set()
    ignored = 0
    total = 0
    kept_resources = []

    for rd in result.resource_drifts:
        kept = []
        for pd in rd.property_drifts:
            total += 1
            decision = should_suppress(rd.resource_type, pd, rules)
            if not decision.suppressed:
                kept.append(pd)
                continue

            ignored += 1
            if decision.rule_id is not None:
                matched.add(decision.rule_id)
            if audit:
                logger.info(
                    "Ignoring drift: %s/%s - %s (%s)",
                    rd.resource_type,
                    rd.resource_name,
                    pd.property_path,
                    decision.reason,
                )
            else:
                logger.info(
                    "Ignoring drift: %s/%s - %s", rd.resource_type, rd.resource_name, pd.property_path
                )

        if kept:
            kept_resources.append(replace(rd, property_drifts=tuple(kept)))

    if ignored:
        logger.info("Filtered %d ignored drift(s) out of %d total drift(s)", ignored, total)

    filtered = build_result(
        kept_resources,
        ignored_count=result.ignored_count + ignored,
        detected_at=result.detected_at,
    )
    return FilterOutcome(result=filtered, usage=RuleUsage(matched=frozenset(matched)))
