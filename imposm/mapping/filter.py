"""Tag filters that drop tags not needed by any table of the mapping."""

from __future__ import annotations

import re
from collections.abc import Iterable

from imposm.mapping.config import ANY_VALUE, Mapping, TableType, TagTables

_GLOB_CHARS = "?*["
_RELATION_TYPES = ("multipolygon", "boundary", "land_area")


def _class_char(pattern: str, i: int) -> tuple[str, int] | None:
    if i >= len(pattern) or pattern[i] in "-]":
        return None
    if pattern[i] == "\\":
        i += 1
        if i >= len(pattern):
            return None
    return pattern[i], i + 1


def _parse_class(pattern: str, i: int) -> tuple[str, int] | None:
    n = len(pattern)
    negate = i < n and pattern[i] == "^"
    if negate:
        i += 1
    items: list[str] = []
    seen = 0
    while True:
        if i < n and pattern[i] == "]" and seen:
            i += 1
            break
        parsed = _class_char(pattern, i)
        if parsed is None:
            return None
        lo, i = parsed
        hi = lo
        if i < n and pattern[i] == "-":
            parsed = _class_char(pattern, i + 1)
            if parsed is None:
                return None
            hi, i = parsed
        seen += 1
        if lo == hi:
            items.append(re.escape(lo))
        elif lo < hi:
            items.append(f"{re.escape(lo)}-{re.escape(hi)}")
    body = "".join(items)
    if negate:
        return (f"[^{body}]" if body else "."), i
    return (f"[{body}]" if body else "(?!)"), i


def _compile_glob(pattern: str) -> re.Pattern[str] | None:
    """Compile a shell pattern where * and ? do not match '/'; None if malformed."""
    parts: list[str] = []
    i, n = 0, len(pattern)
    while i < n:
        char = pattern[i]
        i += 1
        if char == "*":
            parts.append("[^/]*")
        elif char == "?":
            parts.append("[^/]")
        elif char == "\\":
            if i >= n:
                return None
            parts.append(re.escape(pattern[i]))
            i += 1
        elif char == "[":
            parsed = _parse_class(pattern, i)
            if parsed is None:
                return None
            regex, i = parsed
            parts.append(regex)
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts), re.DOTALL)


class TagFilter:
    """Keeps mapped tags and column tags; clears tags without any mapping match."""

    def __init__(self, mappings: TagTables, extra_tags: Iterable[str]) -> None:
        self.mappings = mappings
        self.extra_tags = set(extra_tags)

    def filter(self, tags: dict[str, str] | None) -> bool:
        """Remove unneeded tags in place; return whether any mapping matched."""
        if tags is None:
            return False
        found_mapping = False
        for key, value in list(tags.items()):
            values = self.mappings.get(key)
            if values is not None and (ANY_VALUE in values or value in values):
                found_mapping = True
            elif key not in self.extra_tags:
                del tags[key]
        if found_mapping:
            return True
        tags.clear()
        return False


class RelationTagFilter(TagFilter):
    """Tag filter for multipolygon, boundary and land_area relations."""

    def filter(self, tags: dict[str, str] | None) -> bool:
        if tags is None:
            return False
        rel_type = tags.get("type")
        if rel_type not in _RELATION_TYPES:
            tags.clear()
            return False
        if rel_type == "boundary" and "boundary" not in tags:
            # only boundary relations with a boundary tag are imported
            tags.clear()
            return False

        tag_count = len(tags)
        super().filter(tags)

        if len(tags) < tag_count:
            expected = sum(1 for key in ("name", "type") if key in tags)
            if len(tags) == expected:
                # only name/type left: drop all, otherwise the tags of the
                # longest ring would be used while building the multipolygon
                tags.clear()
                return False
        return True


class ExcludeFilter:
    """Removes excluded keys and keys matching exclude patterns."""

    def __init__(self, keys: Iterable[str]) -> None:
        self.keys: set[str] = set()
        self.patterns: list[re.Pattern[str]] = []
        for key in keys:
            if any(char in key for char in _GLOB_CHARS):
                compiled = _compile_glob(key)
                if compiled is not None:
                    self.patterns.append(compiled)
            else:
                self.keys.add(key)

    def filter(self, tags: dict[str, str] | None) -> bool:
        """Remove excluded tags in place; always returns True."""
        if tags is None:
            return True
        for key in list(tags):
            if key in self.keys or any(p.fullmatch(key) for p in self.patterns):
                del tags[key]
        return True


def _merged_tag_tables(mapping: Mapping, *table_types: TableType) -> TagTables:
    merged: TagTables = {}
    for table_type in table_types:
        for key, by_value in mapping.tag_tables(table_type).items():
            target = merged.setdefault(key, {})
            for value, tables in by_value.items():
                target.setdefault(value, []).extend(tables)
    return merged


def _extra_tags(mapping: Mapping, *table_types: TableType) -> set[str]:
    tags: set[str] = set()
    for table_type in table_types:
        tags.update(mapping.extra_tags(table_type))
    return tags


def node_tag_filter(mapping: Mapping) -> TagFilter | ExcludeFilter:
    """Tag filter for nodes."""
    if mapping.tags.load_all:
        return ExcludeFilter(mapping.tags.exclude)
    return TagFilter(
        _merged_tag_tables(mapping, TableType.POINT),
        _extra_tags(mapping, TableType.POINT),
    )


def way_tag_filter(mapping: Mapping) -> TagFilter | ExcludeFilter:
    """Tag filter for ways."""
    if mapping.tags.load_all:
        return ExcludeFilter(mapping.tags.exclude)
    types = (TableType.LINESTRING, TableType.POLYGON)
    return TagFilter(_merged_tag_tables(mapping, *types), _extra_tags(mapping, *types))


def relation_tag_filter(mapping: Mapping) -> RelationTagFilter | ExcludeFilter:
    """Tag filter for relations; always keeps the relation type tag."""
    if mapping.tags.load_all:
        return ExcludeFilter(mapping.tags.exclude)
    types = (TableType.LINESTRING, TableType.POLYGON)
    mappings = _merged_tag_tables(mapping, *types)
    mappings["type"] = {rel_type: [] for rel_type in _RELATION_TYPES}
    return RelationTagFilter(mappings, _extra_tags(mapping, *types))