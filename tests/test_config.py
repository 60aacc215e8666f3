from __future__ import annotations

import pytest

from pathstorex import ConfigurationError, Reducer, Store, StoreConfig
from pathstorex.config import load_config


def test_defaults() -> None:
    config = load_config()
    assert config.reducers == {}
    assert config.remote is None
    assert config.verbose is False
    assert config.dispatch_actions is True


def test_reducer_instances_are_kept() -> None:
    reducer = Reducer()
    config = load_config({"reducers": {"a": reducer}})
    assert config.reducers["a"] is reducer


def test_camel_case_alias_and_keyword_overrides() -> None:
    assert load_config({"dispatchActions": False}).dispatch_actions is False
    assert load_config(StoreConfig(), verbose=True).verbose is True


def test_non_reducer_value_is_rejected() -> None:
    with pytest.raises(ConfigurationError, match="is not a Reducer instance"):
        Store(reducers={"a": {"not": "a reducer"}})


def test_shared_reducer_instance_is_rejected() -> None:
    shared = Reducer()
    with pytest.raises(ConfigurationError, match="share the same instance"):
        Store(reducers={"a": shared, "b": shared})


@pytest.mark.parametrize(
    "remote",
    [
        {"paths": ["items"]},
        {"paths": [], "request": lambda *args: False},
        {"request": lambda *args: False},
    ],
)
def test_incomplete_remote_config_is_rejected(remote) -> None:
    with pytest.raises(ConfigurationError, match="remote requires paths") as info:
        Store(remote=remote)
    assert info.value.details["component"] == "remote"


def test_invalid_flag_type_is_reported() -> None:
    with pytest.raises(ConfigurationError) as info:
        load_config(verbose={"not": "a bool"})
    assert info.value.details["component"] == "verbose"
