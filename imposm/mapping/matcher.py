"""Matching of element tags against the tables of a mapping."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from dataclasses import field as dc_field
from typing import Any

from imposm.mapping.config import (
    ANY_VALUE,
    DestTable,
    Mapping,
    TableType,
    TagTables,
)
from imposm.mapping.fields import TableFields

ElementFilter = Callable[[dict[str, str]], bool]

# member type of a way, as encoded in PBF relations
_WAY_MEMBER_CODE = 1


@dataclass(frozen=True)
class Match:
    """A tag key/value that selected an element for a destination table."""

    key: str
    value: str
    table: DestTable
    table_fields: TableFields | None = dc_field(default=None, compare=False, repr=False)

    def row(self, elem: Any, geom: Any) -> list[Any]:
        """Column values of the destination table for this element."""
        if self.table_fields is None:
            raise ValueError(f"no columns known for table {self.table.name!r}")
        return self.table_fields.make_row(elem, geom, self)


class TagMatcher:
    """Finds the destination tables of nodes, ways and relations."""

    def __init__(
        self,
        mappings: TagTables,
        tables: dict[str, TableFields],
        filters: dict[str, list[ElementFilter]],
        match_areas: bool = False,
    ) -> None:
        self.mappings = mappings
        self.tables = tables
        self.filters = filters
        self.match_areas = match_areas

    def match_node(self, node: Any) -> list[Match]:
        return self._match(node.tags)

    def match_way(self, way: Any) -> list[Match]:
        tags = way.tags or {}
        if self.match_areas:
            # a way is a polygon only if it is closed
            if way.is_closed():
                if tags.get("area") == "no":
                    return []
                return self._match(tags)
            return []
        if way.is_closed() and tags.get("area") == "yes":
            return []
        return self._match(tags)

    def match_relation(self, rel: Any) -> list[Match]:
        return self._match(rel.tags)

    def _match(self, tags: dict[str, str] | None) -> list[Match]:
        tags = tags if tags is not None else {}
        found: dict[DestTable, tuple[Match, int]] = {}
        for key, value in tags.items():
            values = self.mappings.get(key)
            if values is None:
                continue
            for lookup in (ANY_VALUE, value):
                for dest in values.get(lookup, ()):
                    current = found.get(dest.table)
                    if current is None or dest.order <= current[1]:
                        match = Match(key, value, dest.table, self.tables.get(dest.table.name))
                        found[dest.table] = (match, dest.order)

        return [
            match
            for table, (match, _) in found.items()
            if all(keep(tags) for keep in self.filters.get(table.name, ()))
        ]


def _matcher(mapping: Mapping, table_type: TableType, match_areas: bool) -> TagMatcher:
    return TagMatcher(
        mapping.tag_tables(table_type),
        mapping.tables_for(table_type),
        mapping.element_filters(),
        match_areas,
    )


def point_matcher(mapping: Mapping) -> TagMatcher:
    """Matcher for nodes stored as points."""
    return _matcher(mapping, TableType.POINT, False)


def line_string_matcher(mapping: Mapping) -> TagMatcher:
    """Matcher for ways stored as linestrings."""
    return _matcher(mapping, TableType.LINESTRING, False)


def polygon_matcher(mapping: Mapping) -> TagMatcher:
    """Matcher for closed ways and relations stored as polygons."""
    return _matcher(mapping, TableType.POLYGON, True)


def _is_way_member(member: Any) -> bool:
    kind = member.type
    name = getattr(kind, "name", kind)
    if isinstance(name, str):
        return name.lower() == "way"
    return kind == _WAY_MEMBER_CODE


def _same_key_value_and_table(a: Sequence[Match], b: Sequence[Match]) -> bool:
    return any(
        ma.key == mb.key and ma.value == mb.value and ma.table == mb.table
        for ma in a
        for mb in b
    )


def _same_table(a: Sequence[Match], b: Sequence[Match]) -> bool:
    return any(ma.table == mb.table for ma in a for mb in b)


def select_relation_polygons(matcher: TagMatcher, rel: Any) -> list[Any]:
    """Way members already imported as part of the relation.

    Outer members count if they share a destination table with the relation,
    other members only if they also share the matched key and value.
    """
    rel_matches = matcher.match_relation(rel)
    members: Iterable[Any] = rel.members or ()
    result = []
    for member in members:
        if not _is_way_member(member):
            continue
        member_matches = matcher.match_way(member.way)
        if member.role == "outer" and _same_table(rel_matches, member_matches):
            result.append(member)
        elif _same_key_value_and_table(rel_matches, member_matches):
            result.append(member)
    return result