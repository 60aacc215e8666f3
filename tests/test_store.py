from __future__ import annotations

import logging

import pytest

from pathstorex import (
    INIT_PATH,
    Action,
    ActionError,
    Reducer,
    Store,
    StoreError,
    ValidationError,
    SubscriberResult,
    SubscriptionError,
    create_store,
    to_dict,
)

from .conftest import BoomReducer, ChangeReducer, CountingReducer, SpyReducer


def test_unbound_path_copies_payload() -> None:
    store = create_store()
    store.do(Action("set", {"v": 1}), path="a/b")
    assert to_dict(store.get_state()) == {"a": {"b": {"v": 1}}}
    assert to_dict(store.get_node("a/b")) == {"v": 1}


def test_intermediate_reducers_run_without_touching_siblings(events) -> None:
    top, leaf = ChangeReducer(), ChangeReducer()
    store = Store(reducers={"a": top, "a/b": leaf})
    store.do(Action("seed", {"sibling": 1}), path="a/c")
    store.subscribe(Reducer.CHANGE, events.append, path="a")

    store.do(leaf.action("set", {"v": 1}))

    assert to_dict(store.state) == {"a": {"c": {"sibling": 1}, "b": {"v": 1}}}
    assert len(events) == 1
    assert events[0]["path"] == "a"
    assert to_dict(events[0]["payload"]) == {"c": {"sibling": 1}, "b": {"v": 1}}


def test_path_parameters_reach_the_reducer_context() -> None:
    users = SpyReducer()
    store = Store(reducers={"users/:id": users})

    store.do(users.action("load", {"name": "Ada"}, {"id": 42}))

    assert to_dict(store.get_node("users/42")) == {"name": "Ada"}
    assert users.contexts[-1]["id"] == "42"
    assert users.contexts[-1]["$$path"] == "users/42"


def test_missing_path_parameter_raises() -> None:
    users = Reducer()
    store = Store(reducers={"users/:id": users})
    with pytest.raises(ValidationError):
        store.do(users.action("load", {"name": "Ada"}))
    assert to_dict(store.state) == {}


def test_null_payload_keeps_node_identity() -> None:
    leaf = Reducer()
    store = Store(reducers={"a/b": leaf})
    store.do(leaf.action("set", {"v": 1}))
    before = store.get_node("a/b")

    store.do(leaf.action("touch"))

    assert store.get_node("a/b") is before


def test_reducer_initial_state_is_used_for_new_paths() -> None:
    leaf = Reducer({"v": 0, "w": 0})
    store = Store(reducers={"a": leaf})
    store.do(leaf.action("set", {"v": 1}))
    assert to_dict(store.get_node("a")) == {"v": 1, "w": 0}


def test_init_events_are_suppressed(events) -> None:
    leaf = ChangeReducer()
    store = Store(reducers={"a": leaf})
    store.subscribe(Reducer.CHANGE, events.append)
    store.do(leaf.action("set", {"v": 1}))
    assert len(events) == 1


def test_init_action_carries_the_context() -> None:
    seen = []

    class InitSpy(Reducer):
        def reduce(self, action, state=None, payload=None):
            if action.name == INIT_PATH:
                seen.append(dict(action.context))
            return super().reduce(action, state, payload)

    users = InitSpy()
    store = Store(reducers={"users/:id": users})
    store.do(users.action("load", {"a": 1}, {"id": "7"}))
    store.do(users.action("load", {"a": 2}, {"id": "7"}))

    assert seen == [{"id": "7", "$$path": "users/7"}]


def test_action_name_event_is_dispatched_once_at_target(events) -> None:
    first, second = Reducer(), Reducer()
    store = Store(reducers={"a": first, ":any": second})
    store.subscribe("set", events.append)

    store.do(first.action("set", {"v": 1}))

    assert [event["path"] for event in events] == ["a"]
    assert to_dict(events[0]["payload"]) == {"v": 1}


def test_action_name_events_can_be_disabled(events) -> None:
    leaf = Reducer()
    store = Store(reducers={"a": leaf}, dispatch_actions=False)
    store.subscribe("set", events.append)
    store.do(leaf.action("set", {"v": 1}))
    assert events == []


def test_tree_pass_applies_nested_reducers_once() -> None:
    counter = CountingReducer()
    store = Store(reducers={"a/counter": counter})

    store.do(Action("bump", {"counter": {"n": 2}}), path="a")
    store.do(Action("bump", {"counter": {"n": 3}}), path="a")

    assert to_dict(store.get_node("a/counter")) == {"count": 5}


def test_tree_pass_resolves_parametrized_children() -> None:
    users = SpyReducer()
    store = Store(reducers={"users/:id": users})

    store.do(Action("load", {"1": {"name": "Ada"}, "2": {"name": "Bob"}}), path="users")

    assert sorted(context["id"] for context in users.contexts) == ["1", "2"]
    assert all(context["$$path"] == "users" for context in users.contexts)
    assert to_dict(store.get_node("users/2")) == {"name": "Bob"}


def test_tree_pass_walks_sequences() -> None:
    items = SpyReducer()
    store = Store(reducers={"list/:index": items})

    store.do(Action("load", [{"a": 1}, {"b": 2}]), path="list")

    assert to_dict(store.get_node("list")) == [{"a": 1}, {"b": 2}]
    assert [context["index"] for context in items.contexts] == ["0", "1"]


def test_events_drain_after_commit_in_order() -> None:
    log = []

    class Logging(Reducer):
        def reduce(self, action, state=None, payload=None):
            if action.name != INIT_PATH:
                log.append(f"reduce:{action.name}")
            return super().reduce(action, state, payload)

    reducer = Logging()
    store = Store(reducers={"log": reducer})

    def on_first(event):
        log.append("event:first")
        store.do(reducer.action("second"))

    store.subscribe("first", on_first)
    store.subscribe("second", lambda event: log.append("event:second"))

    store.do(reducer.action("first"))

    assert log == ["reduce:first", "event:first", "reduce:second", "event:second"]


def test_subscriber_sees_committed_state() -> None:
    leaf = Reducer()
    store = Store(reducers={"a": leaf})
    seen = []
    store.subscribe("set", lambda event: seen.append(store.get_node("a")["v"]))
    store.do(leaf.action("set", {"v": 3}))
    assert seen == [3]


def test_subscription_removed_by_return_value(events) -> None:
    leaf = Reducer()
    store = Store(reducers={"a": leaf})

    def once(event):
        events.append(event)
        return SubscriberResult.REMOVE

    store.subscribe("set", once)
    store.do(leaf.action("set", {"v": 1}))
    store.do(leaf.action("set", {"v": 2}))

    assert len(events) == 1


def test_unsubscribe(events) -> None:
    leaf = Reducer()
    store = Store(reducers={"a": leaf})
    store.subscribe("set", events.append).unsubscribe("set", events.append)
    store.do(leaf.action("set", {"v": 1}))
    assert events == []


def test_projection_on_store_events(events) -> None:
    leaf = Reducer()
    store = Store(reducers={"users/:id": leaf})
    store.subscribe("set", events.append, path="users/:id", projection={"city": "address.city"})

    store.do(leaf.action("set", {"address": {"city": "Oslo"}}, {"id": "1"}))

    assert dict(events[0]["payload"]) == {"city": "Oslo"}
    assert dict(events[0]["context"]) == {"id": "1"}


def test_do_rejects_non_actions() -> None:
    with pytest.raises(ActionError):
        create_store().do("nope")  # type: ignore[arg-type]


def test_do_requires_a_path_for_unbound_actions() -> None:
    with pytest.raises(ActionError):
        create_store().do(Action("set", {"v": 1}))


def test_subscribe_validates_arguments() -> None:
    store = create_store()
    with pytest.raises(SubscriptionError):
        store.subscribe("", lambda event: None)
    with pytest.raises(SubscriptionError):
        store.subscribe("set", "not callable")  # type: ignore[arg-type]
    with pytest.raises(SubscriptionError):
        store.subscribe("set", lambda event: None, projection=["a"])  # type: ignore[arg-type]


def test_emit_outside_an_update_raises() -> None:
    store = create_store()
    with pytest.raises(StoreError):
        store.emit("anything")


def test_reducer_error_does_not_commit_and_store_recovers() -> None:
    leaf = BoomReducer()
    store = Store(reducers={"a": leaf})
    store.do(leaf.action("set", {"v": 1}))

    with pytest.raises(RuntimeError, match="reducer exploded"):
        store.do(leaf.action("boom", {"v": 2}))

    assert to_dict(store.state) == {"a": {"v": 1}}
    store.do(leaf.action("set", {"v": 3}))
    assert to_dict(store.state) == {"a": {"v": 3}}


def test_subscriber_error_propagates_after_commit() -> None:
    leaf = Reducer()
    store = Store(reducers={"a": leaf})

    def explode(event):
        raise ValueError("subscriber failed")

    store.subscribe("set", explode)
    with pytest.raises(ValueError):
        store.do(leaf.action("set", {"v": 1}))
    assert to_dict(store.state) == {"a": {"v": 1}}


def test_completion_emits_the_applied_action() -> None:
    leaf = Reducer()
    store = Store(reducers={"a": leaf})
    action = leaf.action("set", {"v": 1})
    results = []

    store.do(action).subscribe(on_next=results.append)

    assert results == [action]


def test_submission_hook_runs_before_the_update() -> None:
    seen = []

    class Submitting(Reducer):
        def submission(self, action):
            seen.append((action.name, to_dict(self.store.get_node("a"))))

    leaf = Submitting()
    store = Store(reducers={"a": leaf})
    store.do(leaf.action("set", {"v": 1}))

    assert seen == [("set", None)]


def test_select_path_emits_changes() -> None:
    store = create_store()
    values = []
    store.select("a/b").subscribe(values.append)

    store.do(Action("set", {"v": 1}), path="a/b")
    store.do(Action("other", {"x": 1}), path="c")

    assert len(values) == 1
    assert values[0][0] is None
    assert to_dict(values[0][1]) == {"v": 1}


def test_select_with_function() -> None:
    store = create_store()
    values = []
    store.select(lambda state: len(state)).subscribe(lambda pair: values.append(pair[1]))

    store.do(Action("set", {"v": 1}), path="a")
    store.do(Action("set", {"v": 2}), path="a")
    store.do(Action("set", {"v": 1}), path="b")

    assert values == [1, 2]


def test_print_state(capsys) -> None:
    store = create_store()
    store.do(Action("set", {"v": 1}), path="a")
    store.print_state()
    assert capsys.readouterr().out.strip() == "{'a': {'v': 1}}"


def test_verbose_traces_at_info(caplog) -> None:
    caplog.set_level(logging.INFO, logger="pathstorex")
    store = create_store(verbose=True)
    store.do(Action("set", {"v": 1}), path="a")
    messages = [record.getMessage() for record in caplog.records]
    assert any("No reducers have been defined" in message for message in messages)
    assert any("getting path 'a' for set" in message for message in messages)


def test_teardown_completes_selections() -> None:
    store = create_store()
    completed = []
    store.select().subscribe(on_completed=lambda: completed.append(True))
    store.teardown()
    assert completed == [True]


def test_empty_path_targets_the_root_instead_of_the_reducer_path() -> None:
    leaf = Reducer()
    store = Store(reducers={"a": leaf})
    store.do(leaf.action("set", {"b": {"v": 1}}), path="")
    assert to_dict(store.state) == {"b": {"v": 1}}
    assert store.get_node("a") is None


@pytest.mark.parametrize("path", ["", "/"])
@pytest.mark.parametrize("payload", [5, [1, 2]])
def test_root_only_accepts_map_payloads(path, payload) -> None:
    store = create_store()
    store.do(Action("seed", {"a": 1}), path="a")
    before = store.state

    with pytest.raises(StoreError, match="root node"):
        store.do(Action("replace", payload), path=path)

    assert store.state is before
    store.do(Action("merge", {"b": 2}), path=path)
    assert to_dict(store.state) == {"a": {"a": 1}, "b": 2}
