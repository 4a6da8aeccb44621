"""Core data models for Azure template drift detection."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum


class ChangeType(StrEnum):
    """Resource-level change reported by a what-if run."""

    CREATE = "Create"
    DELETE = "Delete"
    MODIFY = "Modify"
    DEPLOY = "Deploy"
    NO_CHANGE = "NoChange"
    IGNORE = "Ignore"


class PropertyChangeType(StrEnum):
    """Property-level change inside a what-if delta tree."""

    CREATE = "Create"
    DELETE = "Delete"
    MODIFY = "Modify"
    ARRAY = "Array"
    NO_EFFECT = "NoEffect"


class DriftType(StrEnum):
    """Kind of difference between the template and the live environment."""

    MISSING = "Missing"
    EXTRA = "Extra"
    MODIFIED = "Modified"
    ADDED = "Added"


@dataclass(frozen=True)
class PropertyDrift:
    """A single property difference between expected and actual configuration."""

    property_path: str
    expected_value: str
    actual_value: str
    drift_type: DriftType


@dataclass(frozen=True)
class ResourceDrift:
    """Drift information for a single Azure resource."""

    resource_type: str
    resource_name: str
    resource_id: str
    property_drifts: tuple[PropertyDrift, ...]

    @property
    def has_drift(self) -> bool:
        return bool(self.property_drifts)


@dataclass(frozen=True)
class DriftDetectionResult:
    """Complete drift detection results for one what-if run."""

    has_drift: bool
    resource_drifts: tuple[ResourceDrift, ...]
    summary: str
    detected_at: datetime
    ignored_count: int = 0

    @property
    def property_drift_count(self) -> int:
        return sum(len(rd.property_drifts) for rd in self.resource_drifts)


@dataclass(frozen=True)
class RuleUsage:
    """Identities of the ignore rules that matched at least once during a run."""

    matched: frozenset[str] = field(default_factory=frozenset)

    def unused_rules(self, rule_ids: list[str]) -> list[str]:
        """Return configured rule identities that never fired, in configured order."""
        return [rule_id for rule_id in rule_ids if rule_id not in self.matched]


@dataclass(frozen=True)
class DetectionRun:
    """Filtered drift results for a single resource group."""

    resource_group: str
    template_file: str
    result: DriftDetectionResult
    rule_usage: RuleUsage


@dataclass(frozen=True)
class DetectionReport:
    """Aggregate of every resource group checked in one invocation."""

    runs: list[DetectionRun]
    failed_resource_groups: list[str]

    @property
    def has_drift(self) -> bool:
        return any(run.result.has_drift for run in self.runs)

    @property
    def detected_at(self) -> datetime | None:
        """Detection time of the earliest run, or None when every group failed."""
        return min((run.result.detected_at for run in self.runs), default=None)
