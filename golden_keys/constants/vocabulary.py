DATA_TYPES = (
    {"value": "string", "label": "String", "color": "bg-blue-100 text-blue-800"},
    {"value": "number", "label": "Number", "color": "bg-green-100 text-green-800"},
    {"value": "integer", "label": "Integer", "color": "bg-emerald-100 text-emerald-800"},
    {"value": "decimal", "label": "Decimal", "color": "bg-teal-100 text-teal-800"},
    {"value": "boolean", "label": "Boolean", "color": "bg-purple-100 text-purple-800"},
    {"value": "date", "label": "Date", "color": "bg-orange-100 text-orange-800"},
    {"value": "datetime", "label": "Date & Time", "color": "bg-amber-100 text-amber-800"},
    {"value": "email", "label": "Email", "color": "bg-pink-100 text-pink-800"},
    {"value": "phone", "label": "Phone", "color": "bg-rose-100 text-rose-800"},
    {"value": "currency", "label": "Currency", "color": "bg-lime-100 text-lime-800"},
)

APPROVAL_STATUSES = (
    {"value": "pending", "label": "Pending", "color": "bg-yellow-100 text-yellow-800"},
    {"value": "approved", "label": "Approved", "color": "bg-green-100 text-green-800"},
    {"value": "rejected", "label": "Rejected", "color": "bg-red-100 text-red-800"},
)

DATA_TYPE_VALUES = tuple(option["value"] for option in DATA_TYPES)
APPROVAL_STATUS_VALUES = tuple(option["value"] for option in APPROVAL_STATUSES)

EXPORT_FILENAME = "golden-keys.json"
DEFAULT_VERSION = "1.0"


def resolve_data_types(configured: list[str] | None = None) -> tuple[dict[str, str], ...]:
    """Return the data type options allowed by ``configured``.

    Values unknown to the built-in vocabulary are kept with a title-cased label
    so deployments can extend the list from configuration.
    """
    if not configured:
        return DATA_TYPES

    known = {option["value"]: option for option in DATA_TYPES}
    resolved = []
    seen: set[str] = set()
    for value in configured:
        if value in seen:
            continue
        seen.add(value)
        resolved.append(
            known.get(value)
            or {"value": value, "label": value.replace("_", " ").title(), "color": "bg-gray-100 text-gray-800"}
        )
    return tuple(resolved)
