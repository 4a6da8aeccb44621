"""Flatten what-if delta trees into property-level drift records."""

import json
import logging
from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from bicepdrift.aggregator import build_result
from bicepdrift.jsonvalue import (
    JsonObject,
    JsonValue,
    from_python,
    is_blank,
    items_of,
    render,
)
from bicepdrift.models import (
    ChangeType,
    DriftDetectionResult,
    DriftType,
    PropertyChangeType,
    PropertyDrift,
    ResourceDrift,
)
from bicepdrift.resource_id import parse_resource_id

logger = logging.getLogger(__name__)

NOT_SET = "not set"
RESOURCE_PATH = "resource"

MISSING_RESOURCE = PropertyDrift(
    property_path=RESOURCE_PATH,
    expected_value="defined in template",
    actual_value="missing in live environment",
    drift_type=DriftType.MISSING,
)

EXTRA_RESOURCE = PropertyDrift(
    property_path=RESOURCE_PATH,
    expected_value="not defined in template",
    actual_value="exists in live environment",
    drift_type=DriftType.EXTRA,
)


def _as_value(raw: Any) -> JsonValue:
    if isinstance(raw, JsonValue):
        return raw
    return from_python(raw)


def is_container(change_type: str, before: JsonValue, after: JsonValue, has_children: bool) -> bool:
    """Whether a delta node only groups child changes and must not be emitted.

    Array changes report their element diffs in children, and intermediate
    segments such as array indices carry no before/after of their own.
    """
    if not has_children:
        return False
    return change_type == PropertyChangeType.ARRAY or (is_blank(before) and is_blank(after))


def _leaf_drift(path: str, change_type: str, before: JsonValue, after: JsonValue) -> PropertyDrift:
    match change_type:
        case PropertyChangeType.CREATE:
            return PropertyDrift(path, render(after), NOT_SET, DriftType.MISSING)
        case PropertyChangeType.DELETE:
            return PropertyDrift(path, NOT_SET, render(before), DriftType.EXTRA)
        case _:
            return PropertyDrift(path, render(after), render(before), DriftType.MODIFIED)


def walk_delta(nodes: Iterable[JsonValue], parent_path: str = "") -> Iterator[PropertyDrift]:
    """Yield one PropertyDrift per leaf change below ``parent_path``."""
    for node in nodes:
        if not isinstance(node, JsonObject):
            logger.debug("Skipping non-object delta node under %r", parent_path)
            continue

        change_type = render(node.get("propertyChangeType"))
        if change_type == PropertyChangeType.NO_EFFECT:
            continue

        path = render(node.get("path"))
        full_path = ".".join(part for part in (parent_path, path) if part)

        before = node.get("before")
        after = node.get("after")
        children = items_of(node.get("children"))

        if is_container(change_type, before, after, bool(children)):
            yield from walk_delta(children, full_path)
            continue

        # A pathless leaf has nothing to report under, but its children do.
        if not full_path:
            logger.debug("Skipping delta node without a path")
        else:
            yield _leaf_drift(full_path, change_type, before, after)

        # A modified object can also carry deeper changes of its own.
        if children:
            yield from walk_delta(children, full_path)


def normalize_change(change: Any) -> ResourceDrift | None:
    """Convert one what-if resource change into a ResourceDrift.

    Returns None when the change carries no drift.
    """
    change = _as_value(change)
    if not isinstance(change, JsonObject):
        logger.warning("Skipping malformed resource change: expected an object")
        return None

    change_type = render(change.get("changeType"))
    resource_id = render(change.get("resourceId"))

    match change_type:
        case ChangeType.NO_CHANGE | ChangeType.IGNORE:
            return None
        case ChangeType.CREATE:
            drifts = (MISSING_RESOURCE,)
        case ChangeType.DELETE:
            drifts = (EXTRA_RESOURCE,)
        case ChangeType.MODIFY:
            delta = change.get("delta")
            if not items_of(delta):
                logger.debug("Modify change for %s has no usable delta", resource_id or "<unknown>")
            drifts = tuple(walk_delta(items_of(delta)))
        case _:
            logger.debug("Ignoring %r change for %s", change_type, resource_id or "<unknown>")
            return None

    if not drifts:
        return None

    resource_type, resource_name = parse_resource_id(resource_id)
    return ResourceDrift(
        resource_type=resource_type,
        resource_name=resource_name,
        resource_id=resource_id,
        property_drifts=drifts,
    )


def normalize_changes(document: Any) -> list[ResourceDrift]:
    """Normalize every change in a what-if document, skipping malformed ones."""
    document = _as_value(document)
    if not isinstance(document, JsonObject):
        logger.warning("What-if output is not a JSON object")
        return []

    changes = items_of(document.get("changes"))
    if not changes:
        logger.info("No changes found in what-if output")
        return []

    results = []
    for change in changes:
        resource_drift = normalize_change(change)
        if resource_drift is not None:
            results.append(resource_drift)
    return results


def parse_what_if(output: str | Mapping[str, Any]) -> DriftDetectionResult:
    """Parse raw what-if output into an unfiltered DriftDetectionResult."""
    if isinstance(output, str):
        try:
            document = json.loads(output)
        except json.JSONDecodeError as e:
            logger.warning("Failed to parse what-if JSON: %s", e)
            return build_result([])
    else:
        document = output

    resource_drifts = normalize_changes(document)
    logger.info("Parsed %d resource(s) with drift from what-if output", len(resource_drifts))
    return build_result(resource_drifts)
