"""Column definitions and the functions that compute column values."""

from __future__ import annotations

import logging
import re
import struct
from collections.abc import Callable
from dataclasses import dataclass
from dataclasses import field as dc_field
from typing import Any

log = logging.getLogger(__name__)

MakeValue = Callable[[str, Any, Any, Any], Any]


class MappingError(ValueError):
    """Raised for an invalid mapping configuration."""


@dataclass(frozen=True)
class FieldType:
    """A named column type with its value function or value-function factory."""

    name: str
    value_type: str
    func: MakeValue | None = None
    make_func: Callable[[str, "FieldType", "Field"], MakeValue] | None = None


@dataclass
class Field:
    """A column as configured in the mapping."""

    name: str = ""
    key: str = ""
    keys: list[str] = dc_field(default_factory=list)
    type: str = ""
    args: dict[str, Any] = dc_field(default_factory=dict)

    def field_type(self) -> FieldType | None:
        """Resolve the configured type; None if unknown or misconfigured."""
        field_type = AVAILABLE_FIELD_TYPES.get(self.type)
        if field_type is None:
            return None
        if field_type.make_func is not None:
            try:
                make_value = field_type.make_func(self.name, field_type, self)
            except MappingError as err:
                log.warning("%s", err)
                return None
            return FieldType(field_type.name, field_type.value_type, make_value, None)
        return field_type


@dataclass
class FieldSpec:
    """A column bound to the tag key it reads from."""

    key: str = ""
    type: FieldType | None = None

    def value(self, elem: Any, geom: Any, match: Any) -> Any:
        if self.type is None or self.type.func is None:
            return None
        return self.type.func(elem.tags.get(self.key, ""), elem, geom, match)


@dataclass
class TableFields:
    """The ordered columns of one table."""

    fields: list[FieldSpec] = dc_field(default_factory=list)

    def make_row(self, elem: Any, geom: Any, match: Any) -> list[Any]:
        return [spec.value(elem, geom, match) for spec in self.fields]


_FALSE_VALUES = frozenset({"", "0", "false", "no"})
_TRUE_VALUES = frozenset({"1", "yes", "true"})
_INT_RE = re.compile(r"[+-]?[0-9]+")


def _parse_int(val: str, bits: int) -> int | None:
    if not _INT_RE.fullmatch(val):
        return None
    number = int(val)
    limit = 1 << (bits - 1)
    if not -limit <= number < limit:
        return None
    return number


def bool_value(val: str, elem: Any, geom: Any, match: Any) -> bool:
    return val not in _FALSE_VALUES


def bool_int(val: str, elem: Any, geom: Any, match: Any) -> int:
    """The boolean value of the tag as 0 or 1."""
    return int(bool_value(val, elem, geom, match))


def string(val: str, elem: Any, geom: Any, match: Any) -> str:
    """The tag value as text; a missing value is the empty string."""
    if val is None:
        return ""
    return str(val)


def integer(val: str, elem: Any, geom: Any, match: Any) -> int | None:
    """Parse a 32-bit decimal integer; None if it does not parse or fit."""
    return _parse_int(val, 32)


def id_value(val: str, elem: Any, geom: Any, match: Any) -> int:
    return elem.id


def key_name(val: str, elem: Any, geom: Any, match: Any) -> str:
    return match.key


def value_name(val: str, elem: Any, geom: Any, match: Any) -> str:
    return match.value


def direction(val: str, elem: Any, geom: Any, match: Any) -> int:
    if val in _TRUE_VALUES:
        return 1
    if val == "-1":
        return -1
    return 0


def geometry(val: str, elem: Any, geom: Any, match: Any) -> str:
    wkb = geom.wkb
    if isinstance(wkb, (bytes, bytearray)):
        return wkb.decode("ascii")
    return wkb


def pseudo_area(val: str, elem: Any, geom: Any, match: Any) -> float | None:
    """Area of the geometry in single precision; None for an empty area."""
    area = geom.geom.area
    if area == 0.0:
        return None
    return struct.unpack("f", struct.pack("f", area))[0]


def _hstore_escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')


def hstore_string(val: str, elem: Any, geom: Any, match: Any) -> str:
    return ", ".join(
        f'"{_hstore_escape(k)}"=>"{_hstore_escape(v)}"' for k, v in elem.tags.items()
    )


WAY_RANKS: dict[str, int] = {
    "minor": 3,
    "road": 3,
    "unclassified": 3,
    "residential": 3,
    "tertiary_link": 3,
    "tertiary": 4,
    "secondary_link": 3,
    "secondary": 5,
    "primary_link": 3,
    "primary": 6,
    "trunk_link": 3,
    "trunk": 8,
    "motorway_link": 3,
    "motorway": 9,
}


def way_z_order(val: str, elem: Any, geom: Any, match: Any) -> int:
    tags = elem.tags
    layer = _parse_int(tags.get("layer", ""), 64) or 0
    z = layer * 10

    rank = WAY_RANKS.get(match.value, 0)
    if rank == 0 and "railway" in tags:
        rank = 7
    z += rank

    if tags.get("tunnel", "") in _TRUE_VALUES:
        z -= 10
    if tags.get("bridge", "") in _TRUE_VALUES:
        z += 10
    return z


def make_z_order(field_name: str, field_type: FieldType | None, field: Field) -> MakeValue:
    log.warning("zorder type is deprecated and will be removed. See enumerate type.")
    if "ranks" not in field.args:
        raise MappingError("missing ranks in args for zorder")
    rank_list = field.args["ranks"]
    if not isinstance(rank_list, (list, tuple)):
        raise MappingError("ranks in args for zorder not a list")

    key = field.args.get("key", "")
    if not isinstance(key, str):
        raise MappingError("key in args for zorder not a string")

    if not all(isinstance(rank, str) for rank in rank_list):
        raise MappingError("rank in ranks not a string")
    ranks = {name: len(rank_list) - i for i, name in enumerate(rank_list)}

    def z_order(val: str, elem: Any, geom: Any, match: Any) -> int:
        if key:
            return ranks.get(elem.tags.get(key, ""), 0)
        return ranks.get(match.value, 0)

    return z_order


def make_enumerate(field_name: str, field_type: FieldType | None, field: Field) -> MakeValue:
    if "values" not in field.args:
        raise MappingError("missing values in args for enumerate")
    values_list = field.args["values"]
    if not isinstance(values_list, (list, tuple)):
        raise MappingError("values in args for enumerate not a list")
    if not all(isinstance(value, str) for value in values_list):
        raise MappingError("value in values not a string")
    values = {name: i + 1 for i, name in enumerate(values_list)}

    def enumerate_value(val: str, elem: Any, geom: Any, match: Any) -> int:
        if field.key:
            return values.get(val, 0)
        return values.get(match.value, 0)

    return enumerate_value


def make_suffix_replace(
    field_name: str, field_type: FieldType | None, field: Field
) -> MakeValue:
    if "suffixes" not in field.args:
        raise MappingError("missing suffixes in args for string_suffixreplace")
    changes = field.args["suffixes"]
    if not isinstance(changes, dict):
        raise MappingError("suffixes in args for string_suffixreplace not a dict")
    if not all(isinstance(k, str) and isinstance(v, str) for k, v in changes.items()):
        raise MappingError("suffixes in args for string_suffixreplace not strings")
    str_changes: dict[str, str] = dict(changes)

    try:
        pattern = re.compile("(" + "|".join(str_changes) + r")\b", re.ASCII)
    except re.error as err:
        raise MappingError(f"invalid suffixes for string_suffixreplace: {err}") from err

    def replace(found: re.Match[str]) -> str:
        return str_changes.get(found.group(0), "")

    def suffix_replace(val: str, elem: Any, geom: Any, match: Any) -> str:
        if val:
            return pattern.sub(replace, val)
        return val

    return suffix_replace


AVAILABLE_FIELD_TYPES: dict[str, FieldType] = {
    "bool": FieldType("bool", "bool", bool_value),
    "boolint": FieldType("boolint", "int8", bool_int),
    "id": FieldType("id", "int64", id_value),
    "string": FieldType("string", "string", string),
    "direction": FieldType("direction", "int8", direction),
    "integer": FieldType("integer", "int32", integer),
    "mapping_key": FieldType("mapping_key", "string", key_name),
    "mapping_value": FieldType("mapping_value", "string", value_name),
    "geometry": FieldType("geometry", "geometry", geometry),
    "validated_geometry": FieldType("validated_geometry", "validated_geometry", geometry),
    "hstore_tags": FieldType("hstore_tags", "hstore_string", hstore_string),
    "wayzorder": FieldType("wayzorder", "int32", way_z_order),
    "pseudoarea": FieldType("pseudoarea", "float32", pseudo_area),
    "zorder": FieldType("zorder", "int32", None, make_z_order),
    "enumerate": FieldType("enumerate", "int32", None, make_enumerate),
    "string_suffixreplace": FieldType(
        "string_suffixreplace", "string", None, make_suffix_replace
    ),
}