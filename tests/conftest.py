from __future__ import annotations

from typing import Any, List

import pytest

from pathstorex import INIT_PATH, Reducer


class ChangeReducer(Reducer):
    """Merges like the default reducer and announces every reduction."""

    def reduce(self, action, state=None, payload=None):
        new_state = super().reduce(action, state, payload)
        self.dispatch(Reducer.CHANGE)
        return new_state


class SpyReducer(Reducer):
    """Records the context of every non-init action it reduces."""

    def __init__(self, initial_state: Any = None):
        super().__init__(initial_state)
        self.contexts: List[dict] = []
        self.names: List[str] = []

    def reduce(self, action, state=None, payload=None):
        if action.name != INIT_PATH:
            self.contexts.append(dict(action.context))
            self.names.append(action.name)
        return super().reduce(action, state, payload)


class CountingReducer(Reducer):
    """Accumulates payload["n"] into state["count"]."""

    def __init__(self):
        super().__init__({"count": 0})

    def reduce(self, action, state=None, payload=None):
        if state is None:
            state = self.initial_state
        if payload is None:
            return state
        return state.set("count", state["count"] + payload["n"])


class BoomReducer(Reducer):
    def reduce(self, action, state=None, payload=None):
        if action.name == "boom":
            raise RuntimeError("reducer exploded")
        return super().reduce(action, state, payload)


@pytest.fixture
def events() -> List[dict]:
    return []
