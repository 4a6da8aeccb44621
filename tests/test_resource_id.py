"""Tests for resource ID decomposition."""

import pytest

from bicepdrift.resource_id import parse_resource_id


def test_top_level_resource():
    resource_id = (
        "/subscriptions/0000/resourceGroups/rg/providers/"
        "Microsoft.Storage/storageAccounts/stapp001"
    )

    assert parse_resource_id(resource_id) == ("Microsoft.Storage/storageAccounts", "stapp001")


def test_nested_child_resource():
    resource_id = (
        "/subscriptions/0000/resourceGroups/rg/providers/"
        "Microsoft.Network/virtualNetworks/vnet1/subnets/sub1"
    )

    assert parse_resource_id(resource_id) == (
        "Microsoft.Network/virtualNetworks/subnets",
        "vnet1/sub1",
    )


def test_deeply_nested_resource():
    resource_id = (
        "/subscriptions/0000/resourceGroups/rg/providers/"
        "Microsoft.Storage/storageAccounts/st1/blobServices/default/containers/logs"
    )

    assert parse_resource_id(resource_id) == (
        "Microsoft.Storage/storageAccounts/blobServices/containers",
        "st1/default/logs",
    )


def test_empty_id_is_unknown():
    assert parse_resource_id("") == ("Unknown", "Unknown")


@pytest.mark.parametrize(
    "resource_id",
    [
        "/subscriptions/0000/resourceGroups/rg",
        "/subscriptions/0000/resourceGroups/rg/providers",
        "/subscriptions/0000/resourceGroups/rg/providers/Microsoft.Storage",
        "not-an-id",
    ],
)
def test_unresolvable_id_keeps_raw_name(resource_id):
    assert parse_resource_id(resource_id) == ("Unknown", resource_id)


def test_provider_and_type_without_name():
    resource_id = "/subscriptions/0000/providers/Microsoft.Authorization/policyDefinitions"

    assert parse_resource_id(resource_id) == ("Microsoft.Authorization/policyDefinitions", "")
