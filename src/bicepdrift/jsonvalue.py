"""Tagged JSON value type used when walking what-if delta trees.

The what-if output mixes objects, arrays and scalars freely at every depth.
Converting the parsed document into these variants once lets the normalizer
match on shape instead of sprinkling ``isinstance`` checks through the walk.
"""

import json
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class JsonNull:
    pass


@dataclass(frozen=True)
class JsonBool:
    value: bool


@dataclass(frozen=True)
class JsonNumber:
    value: int | float


@dataclass(frozen=True)
class JsonString:
    value: str


@dataclass(frozen=True)
class JsonArray:
    items: tuple["JsonValue", ...]


@dataclass(frozen=True)
class JsonObject:
    members: tuple[tuple[str, "JsonValue"], ...]

    def get(self, key: str) -> "JsonValue":
        """Return the member named ``key``, or ``JsonNull`` when absent."""
        for name, value in self.members:
            if name == key:
                return value
        return NULL


JsonValue = JsonNull | JsonBool | JsonNumber | JsonString | JsonArray | JsonObject

NULL = JsonNull()


def from_python(raw: Any) -> JsonValue:
    """Convert a ``json.loads`` result into the tagged representation."""
    match raw:
        case None:
            return NULL
        case bool():
            return JsonBool(raw)
        case int() | float():
            return JsonNumber(raw)
        case str():
            return JsonString(raw)
        case list() | tuple():
            return JsonArray(tuple(from_python(item) for item in raw))
        case dict():
            return JsonObject(tuple((str(k), from_python(v)) for k, v in raw.items()))
        case _:
            # Anything json.loads cannot produce is kept as its text form.
            return JsonString(str(raw))


def to_python(value: JsonValue) -> Any:
    match value:
        case JsonNull():
            return None
        case JsonBool(v) | JsonNumber(v) | JsonString(v):
            return v
        case JsonArray(items):
            return [to_python(item) for item in items]
        case JsonObject(members):
            return {name: to_python(member) for name, member in members}


def render(value: JsonValue) -> str:
    """Render a value the way drift records carry it.

    Strings are returned unquoted, numbers and booleans in their JSON text,
    null as the empty string, and arrays/objects as serialized JSON.
    """
    match value:
        case JsonNull():
            return ""
        case JsonString(text):
            return text
        case JsonBool(flag):
            return "true" if flag else "false"
        case JsonNumber(number):
            return json.dumps(number)
        case JsonArray() | JsonObject():
            return json.dumps(to_python(value), ensure_ascii=False, separators=(",", ":"))


def is_blank(value: JsonValue) -> bool:
    return not render(value).strip()


def items_of(value: JsonValue) -> tuple[JsonValue, ...]:
    """Return array items, or an empty tuple for any non-array value."""
    match value:
        case JsonArray(items):
            return items
        case _:
            return ()
