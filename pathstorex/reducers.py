import itertools
import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterator, List, NamedTuple, Optional, Tuple, Union

from .actions import Action
from .errors import ConfigurationError, ReducerError
from .immutable_utils import merge_containers, to_immutable
from .paths import PathPattern

if TYPE_CHECKING:
    from .store import Store

logger = logging.getLogger("pathstorex.reducers")

Handler = Callable[[Any, Action[Any], Any], Any]

_ids = itertools.count()


class Reducer:
    """
    綁定在路徑上的狀態轉換器。

    子類別覆寫 `reduce` 來決定 payload 如何併入該路徑的節點；
    預設行為是淺層合併。Reducer 只能透過回傳新節點來改變狀態，
    不可以直接修改傳入的 state。

    Args:
        initial_state: 路徑第一次被寫入時的預設狀態
    """

    CHANGE = "reducer.change"

    def __init__(self, initial_state: Any = None):
        self.id = next(_ids)
        self.initial_state = to_immutable(initial_state)
        self._path: Optional[str] = None
        self._store: Optional["Store"] = None

    @property
    def path(self) -> Optional[str]:
        """綁定的路徑樣板，尚未綁定時為 None。"""
        return self._path

    @property
    def store(self) -> Optional["Store"]:
        return self._store

    def bind(self, path: str, store: "Store") -> None:
        """
        把 reducer 綁定到路徑與 Store，每個實例只能綁定一次。

        Raises:
            ConfigurationError: 同一個實例已經綁定到其他路徑
        """
        if self._path is not None:
            raise ConfigurationError(
                "Reducer instances must be unique to each path for the store to find "
                f"the correct location to allocate actions: {path} & {self._path} share the same instance",
                component="reducers",
                config_key=path,
            )
        self._path = path
        self._store = store

    def attach(self, store: "Store") -> None:
        """只連接 Store 而不綁定路徑，用於預設 reducer。"""
        self._store = store

    def reduce(self, action: Action[Any], state: Any = None, payload: Any = None) -> Any:
        """
        把 payload 併入 state 並回傳新狀態。

        Args:
            action: 觸發更新的 Action，context 中帶有路徑參數
            state: 此路徑目前的節點
            payload: 此路徑層級上的負載，中間層級為 None

        Returns:
            新的節點
        """
        if state is None:
            state = self.initial_state if self.initial_state is not None else to_immutable({})
        return merge_containers(state, payload)

    def submission(self, action: Action[Any]) -> None:
        """當綁定此 reducer 的 Action 被送進 Store 時呼叫，可用來預先通知介面。"""

    def action(self, name: str, payload: Any = None, context: Any = None) -> Action[Any]:
        """
        建立一個綁定此 reducer 的 Action。

        Args:
            name: Action 名稱
            payload: 負載
            context: 路徑參數

        Returns:
            新的 Action
        """
        return Action(name, payload, context, reducer=self)

    def dispatch(self, event_name: str) -> None:
        """
        把事件加入 Store 的事件佇列，等整個更新完成後才會派發給訂閱者。

        Raises:
            ReducerError: reducer 尚未連接到 Store
        """
        if self._store is None:
            raise ReducerError(
                "Reducer is not attached to a store",
                reducer_name=type(self).__name__,
                event_name=event_name,
            )
        self._store.emit(event_name)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(path={self._path!r})"


class HandlerReducer(Reducer):
    """依 Action 名稱查表選擇處理函式的 reducer，由 `create_reducer` 建立。"""

    def __init__(self, initial_state: Any = None, handlers: Optional[Dict[str, Handler]] = None):
        super().__init__(initial_state)
        self.handlers: Dict[str, Handler] = dict(handlers or {})

    def reduce(self, action: Action[Any], state: Any = None, payload: Any = None) -> Any:
        handler = self.handlers.get(action.name)
        if handler is None:
            # 沒有對應處理函式時使用預設的合併行為
            return super().reduce(action, state, payload)
        if state is None:
            state = self.initial_state
        return handler(state, action, payload)


def on(action_creator_or_name: Union[str, Callable[..., Action[Any]]], handler: Handler) -> Dict[str, Handler]:
    """
    創建一個 action 名稱與處理函式的映射。

    Args:
        action_creator_or_name: Action 創建器函式或 Action 名稱字串
        handler: 處理該 Action 的函式，接收 (state, action, payload) 並返回新狀態

    Returns:
        一個包含 {action_name: handler} 的字典。
    """
    if callable(action_creator_or_name) and hasattr(action_creator_or_name, "type"):
        # 如果是 action 創建器函式，則提取其名稱
        name = action_creator_or_name.type
    else:
        name = str(action_creator_or_name)
    return {name: handler}


def create_reducer(initial_state: Any = None, *handlers: Union[Tuple[str, Handler], Dict[str, Handler]]) -> HandlerReducer:
    """
    創建一個以 action 名稱分派處理函式的 reducer。

    Args:
        initial_state: 初始狀態。
        *handlers: 一系列 (action_name, handler_fn) 元組或使用 on 函式創建的處理器。

    Returns:
        HandlerReducer 實例
    """
    action_handlers: Dict[str, Handler] = {}
    for handler in handlers:
        if isinstance(handler, tuple) and len(handler) == 2:
            name, handler_fn = handler
            action_handlers[name] = handler_fn
        else:
            action_handlers.update(handler)
    return HandlerReducer(initial_state, action_handlers)


class ReducerBinding(NamedTuple):
    """一個綁定在路徑樣板上的 reducer。"""

    pattern: PathPattern
    reducer: Reducer
    order: int


class ReducerRegistry:
    """
    以路徑樣板索引 reducers，並快取「哪些樣板符合這個具體路徑」的查詢結果。

    Attributes:
        maxsize: 快取保留的具體路徑數量上限
        _bindings: 依註冊順序排列的綁定
        _cache: 具體路徑到符合綁定的快取
    """

    def __init__(self, maxsize: int = 1024):
        self.maxsize = maxsize
        self._bindings: List[ReducerBinding] = []
        self._cache: Dict[str, Tuple[ReducerBinding, ...]] = {}

    def register(self, path: str, reducer: Reducer, store: "Store") -> ReducerBinding:
        """
        註冊一個 reducer 到路徑樣板。

        Args:
            path: 路徑樣板
            reducer: 要綁定的 reducer 實例
            store: 擁有此 registry 的 Store

        Raises:
            ConfigurationError: 不是 Reducer 實例，或同一個實例已綁定到其他路徑
        """
        if not isinstance(reducer, Reducer):
            raise ConfigurationError(
                f"Property at path: {path} is not a Reducer instance!",
                component="reducers",
                config_key=path,
            )
        reducer.bind(path, store)
        binding = ReducerBinding(PathPattern(path), reducer, len(self._bindings))
        self._bindings.append(binding)
        # 綁定改變後舊的查詢結果不再可靠
        self._cache.clear()
        return binding

    def resolve(self, path: str) -> Tuple[ReducerBinding, ...]:
        """
        找出所有符合具體路徑的綁定，依註冊順序排列。

        Args:
            path: 具體路徑

        Returns:
            符合的綁定；沒有時為空元組
        """
        cached = self._cache.get(path)
        if cached is not None:
            return cached
        result = tuple(binding for binding in self._bindings if binding.pattern.test(path))
        # 超過上限時先淘汰最早加入的路徑
        while self._cache and len(self._cache) >= self.maxsize:
            del self._cache[next(iter(self._cache))]
        self._cache[path] = result
        return result

    @property
    def bindings(self) -> Tuple[ReducerBinding, ...]:
        return tuple(self._bindings)

    def __iter__(self) -> Iterator[ReducerBinding]:
        return iter(self._bindings)

    def __len__(self) -> int:
        return len(self._bindings)
