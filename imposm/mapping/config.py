"""Mapping configuration: tables, their tag mappings and filters."""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable
from collections.abc import Mapping as AbcMapping
from dataclasses import dataclass
from dataclasses import field as dc_field
from pathlib import Path
from typing import Any

import yaml

from imposm.mapping.fields import Field, FieldSpec, MappingError, TableFields

log = logging.getLogger(__name__)

ANY_VALUE = "__any__"


class TableType(str, enum.Enum):
    """The geometry type a table stores."""

    POLYGON = "polygon"
    LINESTRING = "linestring"
    POINT = "point"
    GEOMETRY = "geometry"

    @classmethod
    def parse(cls, value: Any) -> TableType:
        """Convert a configured type name, raising MappingError if invalid."""
        if value is None or value == "":
            raise MappingError("missing table type")
        try:
            return cls(value)
        except ValueError:
            raise MappingError(f"unknown type {value!r}") from None


@dataclass(frozen=True)
class OrderedValue:
    """A mapped tag value with its position in the mapping."""

    value: str
    order: int


@dataclass(frozen=True)
class DestTable:
    """A destination table, optionally restricted to one of its sub mappings."""

    name: str
    sub_mapping: str = ""


@dataclass(frozen=True)
class OrderedDestTable:
    """A destination table with the order of the mapping entry that led to it."""

    table: DestTable
    order: int


KeyValues = dict[str, list[OrderedValue]]
TagTables = dict[str, dict[str, list[OrderedDestTable]]]
ElementFilter = Callable[[dict[str, str]], bool]


@dataclass
class Filters:
    """Per-table filters applied after matching."""

    exclude_tags: list[tuple[str, str]] | None = None


@dataclass
class Table:
    """A destination table as configured in the mapping."""

    name: str
    type: TableType
    mapping: KeyValues = dc_field(default_factory=dict)
    mappings: dict[str, KeyValues] = dc_field(default_factory=dict)
    type_mappings: dict[TableType, KeyValues] = dc_field(default_factory=dict)
    fields: list[Field] = dc_field(default_factory=list)
    filters: Filters | None = None

    def extra_tags(self) -> set[str]:
        """Tag keys the columns of this table read."""
        tags: set[str] = set()
        for column in self.fields:
            if column.key:
                tags.add(column.key)
            tags.update(column.keys)
        return tags

    def table_fields(self) -> TableFields:
        """Build the column specs used to produce rows for this table."""
        result = TableFields()
        for column in self.fields:
            field_type = column.field_type()
            if field_type is None:
                log.warning("unhandled type: %s", column.type)
            result.fields.append(FieldSpec(key=column.key, type=field_type))
        return result


@dataclass
class GeneralizedTable:
    """A simplified copy of another table."""

    name: str
    source_table_name: str = ""
    tolerance: float = 0.0
    sql_filter: str = ""


@dataclass
class TagsConfig:
    """Settings for loading all tags instead of only the mapped ones."""

    load_all: bool = False
    exclude: list[str] = dc_field(default_factory=list)


class _PairsDict(dict):
    """A dict that also keeps every key/value pair in document order."""

    pairs: list[tuple[Any, Any]]


class _MappingLoader(yaml.SafeLoader):
    """Safe loader whose mappings remember duplicate keys."""


def _construct_mapping(loader: _MappingLoader, node: yaml.MappingNode) -> _PairsDict:
    loader.flatten_mapping(node)
    pairs = loader.construct_pairs(node, deep=True)
    try:
        result = _PairsDict(pairs)
    except TypeError as err:
        raise MappingError(f"invalid mapping key: {err}") from err
    result.pairs = pairs
    return result


_MappingLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG, _construct_mapping
)


def _pairs(data: Any, what: str) -> list[tuple[Any, Any]]:
    pairs = getattr(data, "pairs", None)
    if pairs is not None:
        return list(pairs)
    if isinstance(data, AbcMapping):
        return list(data.items())
    if isinstance(data, (list, tuple)) and all(
        isinstance(item, (list, tuple)) and len(item) == 2 for item in data
    ):
        return [tuple(item) for item in data]
    raise MappingError(f"{what} not a dict")


def _section(data: Any, what: str) -> AbcMapping:
    if data is None:
        return {}
    if not isinstance(data, AbcMapping):
        raise MappingError(f"{what} not a dict")
    return data


def _string(data: AbcMapping, key: str, what: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise MappingError(f"{key} of {what} not a string")
    return value


def _string_list(value: Any, what: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise MappingError(f"{what} not a list of strings")
    return list(value)


def parse_key_values(data: Any) -> KeyValues:
    """Parse a tag mapping of keys to value lists, numbering values in order."""
    result: KeyValues = {}
    if data is None:
        return result
    order = 0
    for key, values in _pairs(data, "mapping"):
        if not isinstance(key, str):
            raise MappingError(f"mapping key {key!r} not a string")
        if not isinstance(values, list):
            raise MappingError(f"mapping values of key {key!r} not a list")
        for value in values:
            if not isinstance(value, str):
                raise MappingError(f"mapping value {value!r} not a string")
            result.setdefault(key, []).append(OrderedValue(value, order))
            order += 1
    return result


def _parse_field(data: Any) -> Field:
    section = _section(data, "column")
    args = section.get("args")
    if args is None:
        args = {}
    if not isinstance(args, AbcMapping):
        raise MappingError("args of column not a dict")
    return Field(
        name=_string(section, "name", "column"),
        key=_string(section, "key", "column"),
        keys=_string_list(section.get("keys"), "keys of column"),
        type=_string(section, "type", "column"),
        args=dict(args),
    )


def _parse_fields(data: Any) -> list[Field]:
    if not isinstance(data, list):
        raise MappingError("columns not a list")
    return [_parse_field(item) for item in data]


def _parse_filters(data: Any) -> Filters | None:
    if data is None:
        return None
    section = _section(data, "filters")
    raw = section.get("exclude_tags")
    if raw is None:
        return Filters()
    if not isinstance(raw, list):
        raise MappingError("exclude_tags not a list")
    exclude: list[tuple[str, str]] = []
    for item in raw:
        if (
            not isinstance(item, list)
            or len(item) != 2
            or not all(isinstance(part, str) for part in item)
        ):
            raise MappingError(f"exclude_tags entry {item!r} not a key/value pair")
        exclude.append((item[0], item[1]))
    return Filters(exclude_tags=exclude)


_TYPE_MAPPING_KEYS = {
    "points": TableType.POINT,
    "linestrings": TableType.LINESTRING,
    "polygons": TableType.POLYGON,
}


def _parse_table(name: str, data: Any) -> Table:
    section = _section(data, f"table {name}")
    mappings = {
        sub_name: parse_key_values(_section(sub, f"sub mapping {sub_name}").get("mapping"))
        for sub_name, sub in _section(section.get("mappings"), "mappings").items()
    }
    raw_type_mappings = _section(section.get("type_mappings"), "type_mappings")
    type_mappings = {
        table_type: parse_key_values(raw_type_mappings[key])
        for key, table_type in _TYPE_MAPPING_KEYS.items()
        if raw_type_mappings.get(key) is not None
    }
    raw_fields = section.get("columns")
    if section.get("fields") is not None:
        raw_fields = section["fields"]
    return Table(
        name=name,
        type=TableType.parse(section.get("type")),
        mapping=parse_key_values(section.get("mapping")),
        mappings=mappings,
        type_mappings=type_mappings,
        fields=_parse_fields(raw_fields) if raw_fields is not None else [],
        filters=_parse_filters(section.get("filters")),
    )


def _parse_generalized_table(name: str, data: Any) -> GeneralizedTable:
    section = _section(data, f"generalized table {name}")
    tolerance = section.get("tolerance", 0.0)
    if tolerance is None:
        tolerance = 0.0
    if isinstance(tolerance, bool) or not isinstance(tolerance, (int, float)):
        raise MappingError(f"tolerance of generalized table {name} not a number")
    return GeneralizedTable(
        name=name,
        source_table_name=_string(section, "source", f"generalized table {name}"),
        tolerance=float(tolerance),
        sql_filter=_string(section, "sql_filter", f"generalized table {name}"),
    )


def _parse_tags(data: Any) -> TagsConfig:
    section = _section(data, "tags")
    load_all = section.get("load_all", False)
    if load_all is None:
        load_all = False
    if not isinstance(load_all, bool):
        raise MappingError("load_all not a bool")
    return TagsConfig(
        load_all=load_all,
        exclude=_string_list(section.get("exclude"), "tags exclude"),
    )


def _add_from_mapping(tag_tables: TagTables, mapping: KeyValues, table: DestTable) -> None:
    for key, values in mapping.items():
        by_value = tag_tables.setdefault(key, {})
        for value in values:
            by_value.setdefault(value.value, []).append(
                OrderedDestTable(table, value.order)
            )


def _exclude_tag_filter(key: str, value: str) -> ElementFilter:
    def keep(tags: dict[str, str]) -> bool:
        if key in tags and (value == ANY_VALUE or tags[key] == value):
            return False
        return True

    return keep


@dataclass
class Mapping:
    """The complete mapping of OSM tags to database tables."""

    tables: dict[str, Table] = dc_field(default_factory=dict)
    generalized_tables: dict[str, GeneralizedTable] = dc_field(default_factory=dict)
    tags: TagsConfig = dc_field(default_factory=TagsConfig)
    # mangle node/way/relation ids into one id space
    single_id_space: bool = False

    @classmethod
    def from_dict(cls, data: Any) -> Mapping:
        """Build a mapping from already loaded configuration data."""
        section = _section(data, "mapping")
        tables: dict[str, Table] = {}
        for name, table in _section(section.get("tables"), "tables").items():
            if not isinstance(name, str):
                raise MappingError(f"table name {name!r} not a string")
            tables[name] = _parse_table(name, table)
        generalized: dict[str, GeneralizedTable] = {}
        for name, table in _section(
            section.get("generalized_tables"), "generalized_tables"
        ).items():
            if not isinstance(name, str):
                raise MappingError(f"table name {name!r} not a string")
            generalized[name] = _parse_generalized_table(name, table)
        single_id_space = section.get("use_single_id_space", False)
        if single_id_space is None:
            single_id_space = False
        if not isinstance(single_id_space, bool):
            raise MappingError("use_single_id_space not a bool")
        return cls(
            tables=tables,
            generalized_tables=generalized,
            tags=_parse_tags(section.get("tags")),
            single_id_space=single_id_space,
        )

    @classmethod
    def from_yaml(cls, text: str) -> Mapping:
        """Build a mapping from YAML text."""
        try:
            data = yaml.load(text, Loader=_MappingLoader)
        except yaml.YAMLError as err:
            raise MappingError(f"invalid mapping: {err}") from err
        return cls.from_dict(data)

    @classmethod
    def from_file(cls, filename: str | Path) -> Mapping:
        """Read and build a mapping from a YAML file."""
        return cls.from_yaml(Path(filename).read_text(encoding="utf-8"))

    def tag_tables(self, table_type: TableType | str) -> TagTables:
        """Destination tables for every mapped key/value of a geometry type."""
        table_type = TableType(table_type)
        result: TagTables = {}
        for name, table in self.tables.items():
            if table.type not in (TableType.GEOMETRY, table_type):
                continue
            _add_from_mapping(result, table.mapping, DestTable(name))
            for sub_name, sub_mapping in table.mappings.items():
                _add_from_mapping(result, sub_mapping, DestTable(name, sub_name))
            type_mapping = table.type_mappings.get(table_type)
            if type_mapping:
                _add_from_mapping(result, type_mapping, DestTable(name))
        return result

    def tables_for(self, table_type: TableType | str) -> dict[str, TableFields]:
        """Column specs of all tables that take the given geometry type."""
        table_type = TableType(table_type)
        return {
            name: table.table_fields()
            for name, table in self.tables.items()
            if table.type in (table_type, TableType.GEOMETRY)
        }

    def extra_tags(self, table_type: TableType | str) -> set[str]:
        """Tag keys needed by the columns and filters of tables of exactly this type."""
        table_type = TableType(table_type)
        tags: set[str] = set()
        for table in self.tables.values():
            if table.type != table_type:
                continue
            tags.update(table.extra_tags())
            if table.filters is not None and table.filters.exclude_tags is not None:
                tags.update(key for key, _ in table.filters.exclude_tags)
        return tags

    def element_filters(self) -> dict[str, list[ElementFilter]]:
        """Per-table predicates; a predicate returns False to drop an element."""
        result: dict[str, list[ElementFilter]] = {}
        for name, table in self.tables.items():
            if table.filters is None or table.filters.exclude_tags is None:
                continue
            for key, value in table.filters.exclude_tags:
                result.setdefault(name, []).append(_exclude_tag_filter(key, value))
        return result