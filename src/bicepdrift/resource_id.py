"""Split Azure resource IDs into resource type and resource name."""

UNKNOWN = "Unknown"


def parse_resource_id(resource_id: str) -> tuple[str, str]:
    """Return ``(resource_type, resource_name)`` for an Azure resource ID.

    Segments after ``providers`` alternate between type and name, starting
    with the provider namespace, so nested children accumulate on both sides::

        .../providers/Microsoft.Network/virtualNetworks/vnet1/subnets/sub1
        -> ("Microsoft.Network/virtualNetworks/subnets", "vnet1/sub1")

    IDs without a usable ``providers`` section come back as
    ``("Unknown", resource_id)``.
    """
    if not resource_id:
        return UNKNOWN, UNKNOWN

    parts = resource_id.split("/")
    try:
        providers_index = parts.index("providers")
    except ValueError:
        return UNKNOWN, resource_id

    remaining = parts[providers_index + 1 :]
    if len(remaining) < 2:
        return UNKNOWN, resource_id

    type_parts = [remaining[0]]
    name_parts = []
    for i, segment in enumerate(remaining[1:], start=1):
        if i % 2 == 1:
            type_parts.append(segment)
        else:
            name_parts.append(segment)

    return "/".join(type_parts), "/".join(name_parts)
