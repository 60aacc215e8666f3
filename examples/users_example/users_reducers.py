import time
from typing import Optional

from pydantic import BaseModel
from pathstorex import Reducer, create_action, create_reducer, on

# ====== Model Definition ======
class UserState(BaseModel):
    name: str = ""
    visits: int = 0
    last_seen: Optional[float] = None


class ChangeReducer(Reducer):
    """預設合併後發出 reducer.change，讓介面可以依路徑訂閱。"""

    def reduce(self, action, state=None, payload=None):
        new_state = super().reduce(action, state, payload)
        self.dispatch(Reducer.CHANGE)
        return new_state


# ====== Handlers ======
def visit_handler(state, action, payload):
    return state.update({"visits": state["visits"] + 1, "last_seen": time.time()})


def rename_handler(state, action, payload):
    return state.set("name", payload)


# ====== Reducers ======
users_reducer = ChangeReducer()
user_reducer = create_reducer(UserState())

# ====== Actions ======
load_users = create_action(users_reducer, "users.load")
visit = create_action(user_reducer, "user.visit")
rename = create_action(user_reducer, "user.rename")

user_reducer.handlers.update(on(visit, visit_handler))
user_reducer.handlers.update(on(rename, rename_handler))
