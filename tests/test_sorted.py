import pytest

from yab.sorted import map_keys


@pytest.mark.parametrize(
    "m, want",
    [
        ({}, []),
        ({"b": 2, "c": 3, "a": 1}, ["a", "b", "c"]),
        ({"b": "2", "c": "3", "a": "1"}, ["a", "b", "c"]),
    ],
)
def test_map_keys(m, want):
    assert map_keys(m) == want


@pytest.mark.parametrize(
    "value",
    [5, "test", object(), None, {1: "a"}],
    ids=["int", "string", "struct", "none", "int key"],
)
def test_map_keys_invalid_type(value):
    with pytest.raises(TypeError):
        map_keys(value)