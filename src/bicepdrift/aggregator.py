"""Fold per-resource drift into detection results and summaries."""

from collections.abc import Iterable
from datetime import UTC, datetime

from bicepdrift.models import DriftDetectionResult, ResourceDrift, RuleUsage


def summarize(resource_count: int, property_count: int, ignored_count: int = 0) -> str:
    """Build the one-line summary sentence for a result."""
    if resource_count:
        return (
            f"Configuration drift detected in {resource_count} resource(s) "
            f"with {property_count} property difference(s)."
        )
    if ignored_count:
        return f"No configuration drift detected after filtering {ignored_count} ignored drift(s)."
    return "No configuration drift detected."


def build_result(
    resource_drifts: Iterable[ResourceDrift],
    ignored_count: int = 0,
    detected_at: datetime | None = None,
) -> DriftDetectionResult:
    """Drop resources without drift and compute has_drift and the summary."""
    surviving = tuple(rd for rd in resource_drifts if rd.property_drifts)
    property_count = sum(len(rd.property_drifts) for rd in surviving)

    return DriftDetectionResult(
        has_drift=bool(surviving),
        resource_drifts=surviving,
        summary=summarize(len(surviving), property_count, ignored_count),
        detected_at=detected_at or datetime.now(UTC),
        ignored_count=ignored_count,
    )


def merge_usage(usages: Iterable[RuleUsage]) -> RuleUsage:
    """Union rule usage collected by independent filter runs."""
    matched: set[str] = set()
    for usage in usages:
        matched |= usage.matched
    return RuleUsage(matched=frozenset(matched))
