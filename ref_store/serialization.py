"""
Default payload codecs.

A payload is one text file holding the whole item set. Both codecs write one
item per line in sorted order so the file diffs cleanly between commits.
"""

import dataclasses
import json
from typing import Any, Callable, Iterable, TypeVar

from ref_store.base import Deserializer, Serializer

T = TypeVar("T")


def lines_serializer(items: Iterable[str]) -> str:
    lines = sorted(set(items))
    for line in lines:
        # Anything splitlines() would break up or the reader skips as blank
        if not line.strip() or line.splitlines() != [line]:
            raise ValueError(f"Item cannot be stored as one line: {line!r}")
    if not lines:
        return ""
    return "\n".join(lines) + "\n"


def lines_deserializer(content: str) -> set[str]:
    return {line for line in content.splitlines() if line.strip()}


def json_lines(cls: type[T]) -> tuple[Serializer[T], Deserializer[T]]:
    """
    Build a codec for a frozen dataclass.

    Each item is written as a JSON object on its own line, keys sorted.
    """
    if not dataclasses.is_dataclass(cls):
        raise TypeError(f"{cls!r} is not a dataclass")
    field_names = {f.name for f in dataclasses.fields(cls)}

    def serialize(items: Iterable[T]) -> str:
        lines = sorted(
            {
                json.dumps(dataclasses.asdict(item), sort_keys=True)
                for item in items
            }
        )
        if not lines:
            return ""
        return "\n".join(lines) + "\n"

    def deserialize(content: str) -> set[T]:
        result = set()
        for lineno, line in enumerate(content.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                data: Any = json.loads(line)
            except json.JSONDecodeError as e:
                raise ValueError(f"Line {lineno} is not valid JSON: {e}") from e
            if not isinstance(data, dict) or set(data) != field_names:
                raise ValueError(
                    f"Line {lineno} does not match the fields of {cls.__name__}"
                )
            result.add(cls(**data))
        return result

    return serialize, deserialize


def mapped_lines(
    to_text: Callable[[T], str], from_text: Callable[[str], T]
) -> tuple[Serializer[T], Deserializer[T]]:
    """Build a line codec from per-item conversion functions."""

    def serialize(items: Iterable[T]) -> str:
        return lines_serializer(to_text(item) for item in items)

    def deserialize(content: str) -> set[T]:
        return {from_text(line) for line in lines_deserializer(content)}

    return serialize, deserialize
