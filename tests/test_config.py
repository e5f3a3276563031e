from types import SimpleNamespace

import pytest

from imposm.mapping.config import (
    DestTable,
    Mapping,
    TableType,
    parse_key_values,
)
from imposm.mapping.fields import MappingError

CONFIG = """
tables:
  pois:
    type: point
    columns:
      - {name: osm_id, type: id}
      - {name: name, key: name, type: string}
      - {name: names, type: hstore_tags, keys: ["name:en", "name:de"]}
    mapping:
      amenity: [cafe, __any__]
    filters:
      exclude_tags:
        - [access, private]
  everything:
    type: geometry
    columns:
      - {name: kind, key: kind, type: string}
    type_mappings:
      points:
        man_made: [tower]
      polygons:
        building: [__any__]
  roads:
    type: linestring
    mappings:
      minor:
        mapping:
          highway: [path]
      major:
        mapping:
          highway: [motorway]
generalized_tables:
  roads_gen:
    source: roads
    tolerance: 50
    sql_filter: "type = 'motorway'"
tags:
  load_all: true
  exclude: [source, "tiger:*"]
use_single_id_space: true
"""


@pytest.fixture
def mapping():
    return Mapping.from_yaml(CONFIG)


def test_table_names_are_set(mapping):
    assert sorted(mapping.tables) == ["everything", "pois", "roads"]
    assert all(table.name == name for name, table in mapping.tables.items())


def test_table_types(mapping):
    assert mapping.tables["pois"].type is TableType.POINT
    assert mapping.tables["everything"].type is TableType.GEOMETRY
    assert mapping.tables["roads"].type is TableType.LINESTRING


def test_generalized_tables(mapping):
    gen = mapping.generalized_tables["roads_gen"]
    assert gen.name == "roads_gen"
    assert gen.source_table_name == "roads"
    assert gen.tolerance == 50.0
    assert gen.sql_filter == "type = 'motorway'"


def test_tags_and_id_space(mapping):
    assert mapping.tags.load_all is True
    assert mapping.tags.exclude == ["source", "tiger:*"]
    assert mapping.single_id_space is True


def test_tag_tables_points_include_geometry_tables(mapping):
    tables = mapping.tag_tables(TableType.POINT)
    assert set(tables) == {"amenity", "man_made"}
    assert set(tables["amenity"]) == {"cafe", "__any__"}
    assert [t.table for t in tables["amenity"]["cafe"]] == [DestTable("pois")]
    assert [t.table for t in tables["man_made"]["tower"]] == [DestTable("everything")]


def test_tag_tables_polygons_use_polygon_type_mappings(mapping):
    tables = mapping.tag_tables("polygon")
    assert set(tables) == {"building"}
    assert [t.table for t in tables["building"]["__any__"]] == [DestTable("everything")]


def test_tag_tables_sub_mappings(mapping):
    tables = mapping.tag_tables(TableType.LINESTRING)
    assert [t.table for t in tables["highway"]["path"]] == [DestTable("roads", "minor")]
    assert [t.table for t in tables["highway"]["motorway"]] == [
        DestTable("roads", "major")
    ]


def test_mapping_orders_follow_document_order(mapping):
    tables = mapping.tag_tables(TableType.POINT)
    first = tables["amenity"]["cafe"][0].order
    second = tables["amenity"]["__any__"][0].order
    assert first < second


def test_extra_tags_only_for_exact_type(mapping):
    assert mapping.extra_tags(TableType.POINT) == {"name", "name:en", "name:de", "access"}
    assert mapping.tables["everything"].extra_tags() == {"kind"}
    assert mapping.extra_tags(TableType.POLYGON) == set()


def test_tables_for(mapping):
    assert set(mapping.tables_for(TableType.POINT)) == {"pois", "everything"}
    assert set(mapping.tables_for(TableType.LINESTRING)) == {"roads", "everything"}


def test_table_fields_make_row(mapping):
    fields = mapping.tables_for(TableType.POINT)["pois"]
    elem = SimpleNamespace(id=42, tags={"name": "Cafe"})
    row = fields.make_row(elem, None, None)
    assert len(row) == 3
    assert row[:2] == [42, "Cafe"]


def test_unknown_column_type_gives_none():
    m = Mapping.from_dict(
        {"tables": {"t": {"type": "point", "columns": [{"name": "x", "key": "x", "type": "nope"}]}}}
    )
    row = m.tables["t"].table_fields().make_row(
        SimpleNamespace(id=1, tags={"x": "1"}), None, None
    )
    assert row == [None]


def test_element_filters(mapping):
    filters = mapping.element_filters()
    assert set(filters) == {"pois"}
    (keep,) = filters["pois"]
    assert keep({"access": "private"}) is False
    assert keep({"access": "yes"}) is True
    assert keep({}) is True


def test_element_filters_any_value():
    m = Mapping.from_dict(
        {
            "tables": {
                "t": {
                    "type": "polygon",
                    "filters": {"exclude_tags": [["area", "__any__"], ["access", "no"]]},
                }
            }
        }
    )
    first, second = m.element_filters()["t"]
    assert first({"area": "whatever"}) is False
    assert first({"access": "no"}) is True
    assert second({"access": "no"}) is False


def test_parse_key_values_orders_are_sequential():
    kv = parse_key_values({"a": ["x", "y"], "b": ["z"]})
    assert [v.value for v in kv["a"]] == ["x", "y"]
    assert [v.value for v in kv["b"]] == ["z"]
    orders = [v.order for values in kv.values() for v in values]
    assert sorted(orders) == list(range(3))
    assert max(v.order for v in kv["a"]) < kv["b"][0].order


def test_parse_key_values_accepts_pairs():
    kv = parse_key_values([("landuse", ["forest"]), ("landuse", ["park"])])
    assert [v.value for v in kv["landuse"]] == ["forest", "park"]


def test_yaml_keeps_duplicate_keys():
    m = Mapping.from_yaml(
        "tables:\n"
        "  landusages:\n"
        "    type: polygon\n"
        "    mapping:\n"
        "      landuse: [forest]\n"
        "      leisure: [park]\n"
        "      landuse: [park]\n"
    )
    kv = m.tables["landusages"].mapping
    assert [v.value for v in kv["landuse"]] == ["forest", "park"]
    assert kv["landuse"][0].order < kv["leisure"][0].order < kv["landuse"][1].order


@pytest.mark.parametrize(
    "data",
    [{"a": "x"}, {"a": [1]}, {1: ["x"]}, "nope"],
)
def test_parse_key_values_errors(data):
    with pytest.raises(MappingError):
        parse_key_values(data)


def test_missing_table_type():
    with pytest.raises(MappingError, match="missing table type"):
        Mapping.from_dict({"tables": {"t": {"mapping": {"a": ["b"]}}}})


def test_unknown_table_type():
    with pytest.raises(MappingError, match="unknown type"):
        Mapping.from_dict({"tables": {"t": {"type": "circle"}}})


def test_invalid_exclude_tags():
    with pytest.raises(MappingError):
        Mapping.from_dict(
            {"tables": {"t": {"type": "point", "filters": {"exclude_tags": [["a"]]}}}}
        )


def test_deprecated_fields_override_columns():
    m = Mapping.from_dict(
        {
            "tables": {
                "t": {
                    "type": "point",
                    "columns": [{"name": "a", "key": "a", "type": "string"}],
                    "fields": [{"name": "b", "key": "b", "type": "string"}],
                }
            }
        }
    )
    assert [f.name for f in m.tables["t"].fields] == ["b"]
    assert m.tables["t"].extra_tags() == {"b"}


def test_from_file(tmp_path, mapping):
    path = tmp_path / "mapping.yml"
    path.write_text(CONFIG, encoding="utf-8")
    loaded = Mapping.from_file(path)
    assert loaded == mapping


def test_empty_yaml():
    m = Mapping.from_yaml("")
    assert m.tables == {}
    assert m.generalized_tables == {}
    assert m.tags.load_all is False
    assert m.single_id_space is False


def test_invalid_yaml():
    with pytest.raises(MappingError):
        Mapping.from_yaml("tables: [unclosed")