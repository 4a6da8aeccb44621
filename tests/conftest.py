"""Shared test fixtures."""

import json
from datetime import UTC, datetime

import pytest

from bicepdrift.models import DriftType, PropertyDrift, ResourceDrift

STORAGE_ID = (
    "/subscriptions/0000/resourceGroups/rg-app/providers/"
    "Microsoft.Storage/storageAccounts/stapp001"
)
VNET_ID = (
    "/subscriptions/0000/resourceGroups/rg-app/providers/"
    "Microsoft.Network/virtualNetworks/vnet-app"
)
QUEUE_ID = (
    "/subscriptions/0000/resourceGroups/rg-app/providers/"
    "Microsoft.ServiceBus/namespaces/sb-app/queues/orders"
)

DETECTED_AT = datetime(2026, 3, 2, 9, 15, 0, tzinfo=UTC)


WHAT_IF_OUTPUT = {
    "status": "Succeeded",
    "changes": [
        {
            "resourceId": STORAGE_ID,
            "changeType": "Modify",
            "delta": [
                {
                    "path": "properties.accessTier",
                    "propertyChangeType": "Modify",
                    "before": "Cool",
                    "after": "Hot",
                },
                {
                    "path": "properties.creationTime",
                    "propertyChangeType": "Modify",
                    "before": "2026-01-01T00:00:00Z",
                    "after": "2026-02-01T00:00:00Z",
                },
            ],
        },
        {
            "resourceId": VNET_ID,
            "changeType": "Modify",
            "delta": [
                {
                    "path": "properties.subnets",
                    "propertyChangeType": "Array",
                    "children": [
                        {
                            "path": "0",
                            "propertyChangeType": "Modify",
                            "children": [
                                {
                                    "path": "properties.addressPrefix",
                                    "propertyChangeType": "Modify",
                                    "before": "10.0.1.0/24",
                                    "after": "10.0.2.0/24",
                                }
                            ],
                        }
                    ],
                }
            ],
        },
        {
            "resourceId": QUEUE_ID,
            "changeType": "NoChange",
        },
    ],
}


@pytest.fixture
def what_if_output():
    """A what-if document as returned by the Azure CLI."""
    return json.loads(json.dumps(WHAT_IF_OUTPUT))


@pytest.fixture
def what_if_text():
    return json.dumps(WHAT_IF_OUTPUT)


def make_resource_drift(resource_type, drifts, name="res1"):
    return ResourceDrift(
        resource_type=resource_type,
        resource_name=name,
        resource_id=f"/subscriptions/0000/resourceGroups/rg/providers/{resource_type}/{name}",
        property_drifts=tuple(
            PropertyDrift(path, expected, actual, DriftType.MODIFIED)
            for path, expected, actual in drifts
        ),
    )
