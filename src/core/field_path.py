"""Field path helpers.

Paths address nested values as dotted names with ``[]`` marking array
elements, for example ``orders[].items[].sku``. Property names that are
empty or contain ``.``, ``[`` or ``]`` are written as a bracketed JSON
string, so ``{"a.b": 1}`` is ``["a.b"]`` and never collides with the
nested path ``a.b``.
"""

from __future__ import annotations

from dataclasses import dataclass
import json

from core.constants import ARRAY_SEGMENT
from core.errors import OdmValidationError

_RESERVED_CHARACTERS = frozenset(".[]")


@dataclass(frozen=True)
class PathSegment:
    """One step of a field path: a property name or an array element."""

    name: str = ""
    is_array: bool = False

    @property
    def sort_key(self) -> tuple[int, str]:
        return (0, "") if self.is_array else (1, self.name)


ARRAY_ELEMENT = PathSegment(is_array=True)


def join_path(parent: str, name: str) -> str:
    """Return the path of object property ``name`` under ``parent``."""
    if _needs_quoting(name):
        return f"{parent}[{json.dumps(name, ensure_ascii=False)}]"
    if not parent:
        return name
    return f"{parent}.{name}"


def array_path(parent: str) -> str:
    """Return the path of array elements under ``parent``."""
    return f"{parent}{ARRAY_SEGMENT}"


def is_array_path(path: str) -> bool:
    """Whether ``path`` addresses array elements."""
    return path.endswith(ARRAY_SEGMENT)


def split_path(path: str) -> tuple[PathSegment, ...]:
    """Split a path into property and array-element segments.

    Args:
        path: Field path such as ``a.b[].c`` or ``a["x.y"]``.

    Returns:
        Ordered segments with decoded property names.

    Raises:
        OdmValidationError: If the path is malformed.
    """
    segments: list[PathSegment] = []
    position = 0
    while position < len(path):
        if path.startswith(ARRAY_SEGMENT, position):
            segments.append(ARRAY_ELEMENT)
            position += len(ARRAY_SEGMENT)
        elif path.startswith('["', position):
            name, position = _decode_quoted(path, position + 1)
            segments.append(PathSegment(name=name))
        else:
            if path[position] == "." and segments:
                position += 1
            end = position
            while end < len(path) and path[end] not in _RESERVED_CHARACTERS:
                end += 1
            if end == position:
                raise _malformed(path)
            segments.append(PathSegment(name=path[position:end]))
            position = end
    return tuple(segments)


def parent_path(path: str) -> str:
    """Return the enclosing path, or an empty string for top-level fields."""
    return _render(split_path(path)[:-1])


def leaf_name(path: str) -> str:
    """Return the last property name of a path, ignoring array markers."""
    names = [segment.name for segment in split_path(path) if not segment.is_array]
    return names[-1] if names else ""


def path_sort_key(path: str) -> tuple[tuple[tuple[int, str], ...], str]:
    """Total-order sort key placing parents before children and siblings by name."""
    return tuple(segment.sort_key for segment in split_path(path)), path


def _needs_quoting(name: str) -> bool:
    return not name or any(character in _RESERVED_CHARACTERS for character in name)


def _decode_quoted(path: str, start: int) -> tuple[str, int]:
    decoder = json.JSONDecoder()
    try:
        name, end = decoder.raw_decode(path, start)
    except json.JSONDecodeError as error:
        raise _malformed(path) from error
    if not isinstance(name, str) or not path.startswith("]", end):
        raise _malformed(path)
    return name, end + 1


def _malformed(path: str) -> OdmValidationError:
    return OdmValidationError(
        f"Invalid field path {path!r}: quote names containing '.', '[' or ']' as [\"name\"]."
    )


def _render(segments: tuple[PathSegment, ...]) -> str:
    path = ""
    for segment in segments:
        path = array_path(path) if segment.is_array else join_path(path, segment.name)
    return path
