"""
基於 PathStoreX 的 Action 定義模組。

此模組提供 Action 類別以及創建 Action 的功能。
Actions 是描述狀態變更意圖的不可變對象，並記錄產生它的 Reducer。
"""
from typing import TYPE_CHECKING, Any, Callable, Generic, Mapping, Optional

from immutables import Map

from .errors import ActionError
from .immutable_utils import to_immutable
from .types import P

if TYPE_CHECKING:
    from .reducers import Reducer

# 保留的 context 鍵，存放此次更新的完整目標路徑
PATH_KEY = "$$path"
# 遠端請求失敗時寫入 payload 的標記鍵
ERROR_KEY = "$$error"
# 第一次寫入某個路徑時，用來建立預設狀態的合成 action 名稱
INIT_PATH = "[Store] Init Path"

_MISSING = object()


class Action(Generic[P]):
    """
    表示一個有名稱、可選負載與路由 context 的動作。

    泛型參數:
        P: 負載的類型

    屬性:
        name: 動作的名稱
        payload: 動作的負載數據（可選），字典與列表會轉為不可變結構
        context: 路徑參數名稱到值的對應 (immutables.Map)
        reducer: 產生此動作的 Reducer，未綁定時為 None
    """
    __slots__ = ("name", "payload", "context", "reducer")

    def __init__(
        self,
        name: str,
        payload: Optional[P] = None,
        context: Optional[Mapping[Any, Any]] = None,
        reducer: Optional["Reducer"] = None,
    ):
        if not name or not isinstance(name, str):
            raise ActionError("the first parameter must be a string identifier", action_name=name)
        super().__setattr__("name", name)
        super().__setattr__("payload", to_immutable(payload))
        super().__setattr__("context", context if isinstance(context, Map) else Map(context or {}))
        super().__setattr__("reducer", reducer)

    def __setattr__(self, name, value):
        if name not in self.__slots__:
            raise AttributeError(f"'{type(self).__name__}' object has no attribute '{name}'")
        raise AttributeError(f"Cannot modify immutable instance attribute '{name}'")

    def is_named(self, name: str) -> bool:
        return self.name == name

    def replace(self, payload: Any = _MISSING, context: Any = _MISSING) -> "Action[P]":
        """
        回傳替換了 payload 或 context 的新 Action，原 Action 不變。

        Args:
            payload: 新的負載
            context: 新的 context

        Returns:
            綁定同一個 Reducer 的新 Action
        """
        return Action(
            self.name,
            self.payload if payload is _MISSING else payload,
            self.context if context is _MISSING else context,
            self.reducer,
        )

    def __repr__(self):
        return f"Action(name='{self.name}', payload={self.payload!r}, context={dict(self.context)!r})"


def create_action(
    reducer: "Reducer",
    name: str,
    prepare_fn: Optional[Callable[..., Any]] = None,
) -> Callable[..., Action[Any]]:
    """
    創建一個綁定到 reducer 的 Action 生成器函數。

    Args:
        reducer: 產生 Action 的 Reducer
        name: Action 的名稱
        prepare_fn: 可選的預處理函數，用於在創建 Action 前處理輸入參數

    Returns:
        一個可調用的函數，用於生成指定名稱的 Action，
        可以透過關鍵字參數 `context` 傳入路徑參數

    範例:
        >>> rename = create_action(users, "users.rename", lambda name: {"name": name})
        >>> rename("Ada", context={"id": 42})
    """
    def action_creator(*args: Any, context: Optional[Mapping[Any, Any]] = None, **kwargs: Any) -> Action[Any]:
        if prepare_fn:
            payload = prepare_fn(*args, **kwargs)
        elif len(args) == 1 and not kwargs:
            payload = args[0]
        elif kwargs and not args:
            payload = kwargs
        elif args or kwargs:
            raise ActionError(
                "positional and keyword payloads cannot be mixed without a prepare function",
                action_name=name,
            )
        else:
            # 無參數，無負載
            payload = None
        return reducer.action(name, payload, context)

    # 添加 type 屬性以便於識別
    action_creator.type = name  # type: ignore
    return action_creator
