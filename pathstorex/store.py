import functools
import logging
import pprint
from collections import deque
from typing import Any, Callable, Deque, Generic, Mapping, Optional, TypeVar, Union

from immutables import Map
from reactivex import Observable, operators as ops
from reactivex.subject import AsyncSubject, Subject

from .actions import Action
from .config import StoreConfig, load_config
from .engine import PassContext, UpdateEngine
from .errors import ActionError, StoreError, SubscriptionError
from .events import Dispatcher, EventQueue
from .immutable_utils import get_in, to_dict
from .paths import compile_pattern, split_path
from .reducers import Reducer, ReducerRegistry
from .remote import RemoteBridge
from .types import SubscriberCallback

logger = logging.getLogger("pathstorex.store")

S = TypeVar("S")


class _Cycle:
    """一個排隊中的更新週期：遠端請求、Branch、Tree 與事件派發。"""

    __slots__ = ("action", "target", "completion", "done", "suspended", "error")

    def __init__(self, action: Action[Any], target: str):
        self.action = action
        self.target = target
        self.completion: AsyncSubject = AsyncSubject()
        self.done = False
        self.suspended = False
        self.error: Optional[BaseException] = None


class Store(Generic[S]):
    """
    以路徑定址的階層式狀態容器。

    狀態是一棵由 `immutables.Map` 與 `tuple` 組成的樹，樹的形狀對應
    reducers 綁定的路徑。每次 `do` 都會排隊執行一個完整的更新週期，
    前一個週期的事件派發完畢之前，下一個週期不會開始。

    Args:
        config: StoreConfig 或設定字典
        **options: 直接以關鍵字指定的設定，會覆蓋 config 中的同名項目
    """

    def __init__(self, config: Union[StoreConfig, Mapping[str, Any], None] = None, **options: Any):
        self.config = load_config(config, **options)
        self.verbose = self.config.verbose

        # 每個 Store 擁有自己的 reducer 索引、事件佇列與狀態樹
        self._registry = ReducerRegistry()
        for path, reducer in self.config.reducers.items():
            self._registry.register(path, reducer, self)
        if not self.config.reducers and self.verbose:
            logger.warning(
                "No reducers have been defined for the store, "
                "all data will be copied as submitted in action payloads"
            )

        # 沒有 reducer 符合的路徑使用預設的合併 reducer
        self._default_reducer = Reducer()
        self._default_reducer.attach(self)

        self._engine = UpdateEngine(
            self._registry,
            self._default_reducer,
            dispatch_actions=self.config.dispatch_actions,
            verbose=self.verbose,
        )

        self._bridge: Optional[RemoteBridge] = None
        if self.config.remote is not None:
            self._bridge = RemoteBridge(
                self.config.remote.paths,
                self.config.remote.request,
                verbose=self.verbose,
            )

        self._dispatcher = Dispatcher()
        self._events = EventQueue()
        self._state: Map = Map()
        # 狀態流，每次提交後發送 (old_state, new_state)
        self._state_subject = Subject()

        self._pending: Deque[_Cycle] = deque()
        self._busy = False
        self._pass: Optional[PassContext] = None

    def _trace(self, message: str, *args: Any) -> None:
        logger.log(logging.INFO if self.verbose else logging.DEBUG, message, *args)

    @property
    def registry(self) -> ReducerRegistry:
        return self._registry

    def do(self, action: Action[Any], path: Optional[str] = None) -> Observable:
        """
        執行一個 action，並把結果套用到狀態樹。

        Args:
            action: 要執行的 Action，必須由 Reducer.action 建立或是 Action 實例
            path: 可選的目標路徑樣板；省略時使用 action 所屬 reducer 的路徑，
                  樣板中的參數由 action.context 代入；
                  空字串或 "/" 指向根節點，根節點只能寫入映射

        Returns:
            一個在更新週期（含事件派發）完成時發出 action 並結束的 Observable，可以 await

        Raises:
            ActionError: 參數不是 Action，或無法決定目標路徑
            StoreError: 同步執行的週期把根節點換成了非映射的值
            Exception: 同步執行的週期中 reducer 拋出的例外
        """
        if not isinstance(action, Action):
            raise ActionError("Parameter 1 must be an Action instance", action_name=repr(action))

        template = path if path is not None else (action.reducer.path if action.reducer is not None else None)
        if template is None:
            raise ActionError(
                "the action is not bound to a reducer path and no path was given",
                action_name=action.name,
            )
        target = compile_pattern(template).to_path(action.context)
        self._trace("getting path %r for %s", target, action.name)

        if action.reducer is not None:
            action.reducer.submission(action)

        cycle = _Cycle(action, target)
        self._pending.append(cycle)
        if not self._busy:
            self._pump()

        if cycle.done and cycle.error is not None:
            raise cycle.error
        return cycle.completion

    def _pump(self) -> None:
        """依序執行排隊中的週期；遇到尚未完成的遠端請求就暫停，等它完成後再繼續。"""
        self._busy = True
        while self._pending:
            cycle = self._pending[0]
            self._start(cycle)
            if not cycle.done:
                cycle.suspended = True
                return
            self._pending.popleft()
        self._busy = False

    def _start(self, cycle: _Cycle) -> None:
        on_ready = functools.partial(self._complete, cycle)
        if self._bridge is None:
            on_ready(cycle.action.payload)
            return
        state = self.get_node(cycle.target)
        self._bridge.fetch(cycle.target, cycle.action, Map() if state is None else state, on_ready)

    def _complete(self, cycle: _Cycle, payload: Any) -> None:
        action = cycle.action
        if payload is not action.payload:
            # 以遠端合併後的 payload 取代原本的 payload
            action = action.replace(payload=payload)
            self._trace("updating with this action payload %r", action)

        try:
            self._apply(action, cycle.target)
        except Exception as err:
            cycle.error = err
        cycle.done = True

        if cycle.error is None:
            cycle.completion.on_next(action)
            cycle.completion.on_completed()
        else:
            if cycle.suspended:
                # 沒有同步的呼叫者可以接收例外，至少留下紀錄
                logger.error("update for %s failed: %s", cycle.target, cycle.error)
            cycle.completion.on_error(cycle.error)

        if cycle.suspended:
            self._pending.popleft()
            self._pump()

    def _apply(self, action: Action[Any], target: str) -> None:
        ctx = PassContext(action, target, self._events, self._node_accessor)
        old_state = self._state
        self._pass = ctx
        try:
            new_state = self._engine.run(old_state, ctx)
            # 兩個階段都成功後才提交新的狀態樹
            self._state = new_state
            self._dispatcher.drain(self._events)
        finally:
            self._pass = None
            self._events.clear()
        self._state_subject.on_next((old_state, new_state))

    def _node_accessor(self, path: str) -> Callable[[], Any]:
        return functools.partial(self.get_node, path)

    def emit(self, event_name: str) -> "Store[S]":
        """
        由 reducer 呼叫：把事件加入佇列，記錄目前的路徑與 context。

        Raises:
            StoreError: 不在更新週期中
        """
        if self._pass is None:
            raise StoreError(
                "events can only be emitted by reducers during an update",
                operation="emit",
                event_name=event_name,
            )
        self._pass.emit(event_name)
        return self

    def subscribe(
        self,
        event_name: str,
        callback: SubscriberCallback,
        path: Optional[str] = None,
        projection: Optional[Mapping[str, str]] = None,
    ) -> "Store[S]":
        """
        訂閱事件。

        Args:
            event_name: 事件名稱
            callback: 接收 EventRecord 的回呼；回傳 SubscriberResult.REMOVE（或其他真值）即取消訂閱
            path: 可選的路徑樣板，只接收路徑符合的事件，樣板參數會成為事件的 context
            projection: 可選的欄位投影，輸出鍵到點號來源路徑的對應

        Returns:
            Store 本身，方便串接
        """
        if not event_name or not isinstance(event_name, str) or not callable(callback):
            raise SubscriptionError(
                "you must always call subscribe with a string event name and a callback function",
                event_name=event_name,
            )
        if projection is not None and not isinstance(projection, Mapping):
            raise SubscriptionError("projection must be a mapping of keys to dotted paths", event_name=event_name)
        self._dispatcher.subscribe(event_name, callback, path, projection)
        return self

    def unsubscribe(self, event_name: str, callback: Optional[SubscriberCallback] = None) -> "Store[S]":
        """取消訂閱；省略 callback 時移除此事件名稱下的所有訂閱。"""
        self._dispatcher.unsubscribe(event_name, callback)
        return self

    def get_state(self) -> Map:
        """目前狀態樹的快照。"""
        return self._state

    @property
    def state(self) -> Map:
        return self._state

    def get_node(self, path: str) -> Any:
        """取得具體路徑上的節點，不存在時為 None。"""
        return get_in(self._state, split_path(path))

    def select(self, selector: Union[Callable[[Any], Any], str, None] = None) -> Observable:
        """
        選擇狀態的一部分進行觀察。

        Args:
            selector: 接收整個狀態並回傳想觀察部分的函式，或一個具體路徑

        Returns:
            一個可觀察對象，每次提交後在選定部分改變時發送 (old, new)
        """
        if selector is None:
            return self._state_subject.pipe(ops.distinct_until_changed(lambda x: x[1]))

        if isinstance(selector, str):
            steps = split_path(selector)
            selector = functools.partial(get_in, keys=steps)

        return self._state_subject.pipe(
            # 將元組 (old_state, new_state) 轉換為 (selector(old_state), selector(new_state))
            ops.map(lambda state_tuple: (selector(state_tuple[0]), selector(state_tuple[1]))),
            # 只有當新狀態變化時才發出
            ops.distinct_until_changed(lambda x: x[1]),
        )

    def print_state(self) -> "Store[S]":
        pprint.pprint(to_dict(self._state))
        return self

    def teardown(self) -> None:
        """結束狀態流並移除所有訂閱。"""
        self._state_subject.on_completed()
        self._dispatcher.clear()


def create_store(config: Union[StoreConfig, Mapping[str, Any], None] = None, **options: Any) -> Store:
    """
    創建一個新的 Store 實例。

    Returns:
        Store: 新創建的 Store 實例。
    """
    return Store(config, **options)
