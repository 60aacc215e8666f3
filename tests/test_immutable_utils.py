from __future__ import annotations

from immutables import Map
from pydantic import BaseModel

from pathstorex.immutable_utils import (
    ContainerKind,
    get_in,
    get_member,
    kind_of,
    merge_containers,
    merge_payloads,
    set_member,
    to_dict,
    to_immutable,
)


class Address(BaseModel):
    city: str
    zip: str = "0000"


def test_kind_of_classifies_containers() -> None:
    assert kind_of(Map()) is ContainerKind.MAP
    assert kind_of({}) is ContainerKind.MAP
    assert kind_of(()) is ContainerKind.SEQUENCE
    assert kind_of([]) is ContainerKind.SEQUENCE
    assert kind_of("text") is ContainerKind.SCALAR
    assert kind_of(None) is ContainerKind.SCALAR


def test_to_immutable_and_back() -> None:
    data = {"a": [{"b": 1}], "c": {"d": 2}}
    frozen = to_immutable(data)
    assert isinstance(frozen, Map)
    assert isinstance(frozen["a"], tuple)
    assert isinstance(frozen["a"][0], Map)
    assert to_dict(frozen) == data


def test_to_immutable_converts_pydantic_models() -> None:
    frozen = to_immutable(Address(city="Oslo"))
    assert to_dict(frozen) == {"city": "Oslo", "zip": "0000"}


def test_map_merge_is_union_with_payload_winning() -> None:
    merged = merge_containers(to_immutable({"a": 1, "b": 2}), {"b": 3, "c": 4})
    assert to_dict(merged) == {"a": 1, "b": 3, "c": 4}


def test_no_payload_keeps_state_object() -> None:
    state = to_immutable({"a": 1})
    assert merge_containers(state, None) is state


def test_kind_change_replaces_wholesale() -> None:
    assert merge_containers(to_immutable({"a": 1}), [1, 2]) == (1, 2)
    assert to_dict(merge_containers((1, 2), {"a": 1})) == {"a": 1}


def test_scalar_payload_replaces_state() -> None:
    assert merge_containers(to_immutable({"a": 1}), 5) == 5


def test_shorter_sequence_payload_keeps_trailing_state() -> None:
    assert merge_containers((1, 2, 3), [9]) == (9, 2, 3)


def test_longer_sequence_payload_extends_state() -> None:
    assert merge_containers((1,), [7, 8]) == (7, 8)


def test_set_member_never_mutates() -> None:
    node = to_immutable({"a": 1})
    updated = set_member(node, "b", 2)
    assert "b" not in node
    assert to_dict(updated) == {"a": 1, "b": 2}


def test_set_member_pads_sequences() -> None:
    assert set_member((1,), "2", "x") == (1, None, "x")


def test_set_member_replaces_scalars_with_map() -> None:
    assert to_dict(set_member(5, "a", 1)) == {"a": 1}


def test_get_member_and_get_in() -> None:
    tree = to_immutable({"items": [{"name": "a"}, {"name": "b"}]})
    assert get_member(tree["items"], "1")["name"] == "b"
    assert get_member(tree["items"], 5) is None
    assert get_in(tree, ["items", "0", "name"]) == "a"
    assert get_in(tree, ["missing", "x"]) is None


def test_merge_payloads_overlays_maps() -> None:
    merged = merge_payloads(to_immutable({"qty": 1}), {"name": "x"})
    assert to_dict(merged) == {"qty": 1, "name": "x"}
    assert merge_payloads(to_immutable({"qty": 1}), None) == to_immutable({"qty": 1})
    assert merge_payloads(None, [1]) == (1,)
