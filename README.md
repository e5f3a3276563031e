# imposm

Building blocks for turning OpenStreetMap data into rows for a spatial
database: a YAML-driven tag mapping, column value functions, tag
filters, tag matchers, import progress statistics and helpers for
splitting work between reader threads.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Mapping files

A mapping is a YAML document describing destination tables, the tags
that send an element to each table, and the columns each table gets:

```yaml
tables:
  places:
    type: point
    mapping:
      place: [city, town, village]
    columns:
      - {name: osm_id, type: id}
      - {name: name, type: string, key: name}
      - {name: population, type: integer, key: population}
```

Load it with `Mapping.from_file`, `Mapping.from_yaml` or
`Mapping.from_dict` from `imposm.mapping.config`. Invalid configuration
raises `MappingError` (a `ValueError`).

A table has a `type` (`point`, `linestring`, `polygon` or `geometry`),
a `mapping` of keys to value lists (the value `__any__` matches every
value of a key), optional named sub `mappings`, optional
`type_mappings` (`points`, `linestrings`, `polygons`), `columns` (the
older name `fields` is still read and takes precedence) and
`filters` with `exclude_tags` as `[key, value]` pairs. The top level
also accepts `generalized_tables`, `tags` (`load_all`, `exclude`) and
`use_single_id_space`.

## Column types

`imposm.mapping.fields` holds the column types, keyed by name in
`AVAILABLE_FIELD_TYPES`: `bool`, `boolint`, `id`, `string`,
`direction`, `integer`, `mapping_key`, `mapping_value`, `geometry`,
`validated_geometry`, `hstore_tags`, `wayzorder`, `pseudoarea`, and the
configurable `zorder` (deprecated; `args: {ranks: [...], key: ...}`),
`enumerate` (`args: {values: [...]}`) and `string_suffixreplace`
(`args: {suffixes: {from: to}}`). `Field.field_type()` resolves a
column's type and returns `None` for unknown or misconfigured types.

## Filtering tags

`imposm.mapping.filter` builds filters that strip every tag a mapping
does not need. `node_tag_filter`, `way_tag_filter` and
`relation_tag_filter` each take a `Mapping`; the returned filter's
`filter(tags)` method edits the tag dict in place and returns whether
the element is still of interest. Relations are only kept with a
`type` of `multipolygon`, `boundary` (with a `boundary` tag) or
`land_area`. With `tags: {load_all: true}` in the mapping an
`ExcludeFilter` is used instead, which only removes the keys or glob
patterns listed under `exclude`.

## Matching elements

`imposm.mapping.matcher` provides `point_matcher`,
`line_string_matcher` and `polygon_matcher`. A `TagMatcher` returns a
list of `Match` objects for a node, way or relation, one per
destination table; when several tags lead to the same table, the one
listed first in the mapping wins. `Match.row(elem, geom)` builds the
row for that table from its column definitions.
`select_relation_polygons` picks the member ways of a multipolygon
relation that are already covered by the relation itself.

Elements are duck-typed: they need a `tags` dict, ways an
`is_closed()` method, relations a `members` list whose members have
`type`, `role` and `way`.

## Progress statistics

`imposm.stats.stats.Statistics` counts coords, nodes, ways and
relations while an import runs and logs the rates per second from a
background thread (every half second through the
`imposm.stats.stats.progress` logger, every minute through
`imposm.stats.stats`). `stop()`, or leaving a `with` block, ends the
reporting and returns the final `ElementCounts`. Passing the counts of
an earlier run makes the progress show as percentages.
`imposm.stats.counter.RpsCounter` is the underlying thread-safe
counter.

## Reader settings

`imposm.reader.readers_for_cpus` works out how many workers to use for
each element type, and `procs_from_env` reads an override from the
`IMPOSM_READ_PROCS` environment variable (`parser:relations:ways:nodes`;
the coords count follows the nodes count). `imposm.barrier.Barrier`
runs a callback once, after every registered thread has arrived, and
lets all of them continue when it returns.

## What this package does not do

It does not read OSM files, project coordinates, build geometries,
cache elements or write to a database, and it has no command-line
program. It supplies the mapping, filtering, matching and reporting
parts that such an import is built from.