from unittest import mock

import pytest

from imposm.reader import ReaderProcs, procs_from_env, readers_for_cpus


@pytest.mark.parametrize(
    "cpus, expected",
    [
        (1, (1, 1, 1, 1, 1)),
        (2, (2, 1, 1, 1, 1)),
        (4, (3, 1, 1, 1, 1)),
        (8, (6, 2, 2, 2, 2)),
        (12, (9, 3, 3, 3, 3)),
    ],
)
def test_readers_for_cpus(cpus, expected):
    assert tuple(readers_for_cpus(cpus)) == expected


def test_readers_for_cpus_fields():
    procs = readers_for_cpus(8)
    assert procs == ReaderProcs(parser=6, relations=2, ways=2, nodes=2, coords=2)


def test_procs_from_env_parses_counts():
    procs = procs_from_env({"IMPOSM_READ_PROCS": "4:2:3:5"})
    assert procs == ReaderProcs(parser=4, relations=2, ways=3, nodes=5, coords=5)


def test_procs_from_env_invalid_count_is_zero():
    procs = procs_from_env({"IMPOSM_READ_PROCS": "x:2:y:1"})
    assert tuple(procs) == (0, 2, 0, 1, 1)


def test_procs_from_env_clamps_large_count():
    procs = procs_from_env({"IMPOSM_READ_PROCS": "99999999999:1:1:1"})
    assert procs.parser == 2147483647


def test_procs_from_env_too_few_parts():
    with pytest.raises(ValueError):
        procs_from_env({"IMPOSM_READ_PROCS": "1:2"})


def test_procs_from_env_defaults_to_cpu_count():
    with mock.patch("imposm.reader.os.cpu_count", return_value=8):
        procs = procs_from_env({})
    assert tuple(procs) == (6, 2, 2, 2, 2)


def test_procs_from_env_unknown_cpu_count():
    with mock.patch("imposm.reader.os.cpu_count", return_value=None):
        procs = procs_from_env({})
    assert tuple(procs) == (1, 1, 1, 1, 1)