"""
事件佇列與派發器。

Reducer 在更新過程中發出的事件先緩存在 `EventQueue`，
等 Branch 與 Tree 兩個階段都完成後，才由 `Dispatcher.drain` 一次派發給訂閱者。
"""
import contextlib
import logging
from typing import Any, Callable, Dict, Iterator, List, Mapping, NamedTuple, Optional, Tuple

from immutables import Map

from .immutable_utils import get_in
from .paths import PathPattern, compile_pattern
from .types import EventRecord, SubscriberCallback, SubscriberResult

logger = logging.getLogger("pathstorex.events")

_UNSET = object()


class QueuedEvent(NamedTuple):
    """等待派發的事件，payload 是延遲求值的存取函式。"""

    name: str
    payload: Callable[[], Any]
    path: str
    context: Mapping[Any, Any]


class EventQueue:
    """單次更新週期內的事件緩衝區。"""

    def __init__(self):
        self._events: List[QueuedEvent] = []
        self._suppressed = 0

    def emit(self, name: str, path: str, context: Mapping[Any, Any], payload: Callable[[], Any]) -> None:
        if self._suppressed:
            return
        self._events.append(QueuedEvent(name, payload, path, context))

    @contextlib.contextmanager
    def suppressed(self) -> Iterator[None]:
        """在這個區塊內發出的事件全部丟棄，用於路徑初始化。"""
        self._suppressed += 1
        try:
            yield
        finally:
            self._suppressed -= 1

    def clear(self) -> None:
        self._events.clear()

    def __iter__(self) -> Iterator[QueuedEvent]:
        return iter(self._events)

    def __len__(self) -> int:
        return len(self._events)


class Subscription:
    """
    一個訂閱：事件名稱、可選的路徑樣板、可選的欄位投影，以及回呼。

    Args:
        event_name: 事件名稱
        callback: 回呼函式
        pattern: 只接收路徑符合此樣板的事件
        projection: 輸出鍵到來源點號路徑的對應，例如 {"city": "address.city"}
    """

    def __init__(
        self,
        event_name: str,
        callback: SubscriberCallback,
        pattern: Optional[PathPattern] = None,
        projection: Optional[Mapping[str, str]] = None,
    ):
        self.event_name = event_name
        self.callback = callback
        self.pattern = pattern
        self.projection: Optional[Dict[str, Tuple[str, ...]]] = None
        if projection:
            self.projection = {key: tuple(source.split(".")) for key, source in projection.items()}

    def project(self, payload: Any) -> Any:
        """依投影設定重新組合 payload，找不到的欄位為 None。"""
        if self.projection is None:
            return payload
        return Map({key: get_in(payload, parts) for key, parts in self.projection.items()})

    def __repr__(self) -> str:
        path = self.pattern.path if self.pattern else None
        return f"Subscription({self.event_name!r}, path={path!r})"


class Dispatcher:
    """管理訂閱，並在更新週期結束時派發事件。"""

    def __init__(self):
        self._subscriptions: Dict[str, List[Subscription]] = {}

    def subscribe(
        self,
        event_name: str,
        callback: SubscriberCallback,
        path: Optional[str] = None,
        projection: Optional[Mapping[str, str]] = None,
    ) -> Subscription:
        pattern = compile_pattern(path) if path else None
        subscription = Subscription(event_name, callback, pattern, projection)
        self._subscriptions.setdefault(event_name, []).append(subscription)
        return subscription

    def unsubscribe(self, event_name: str, callback: Optional[SubscriberCallback] = None) -> None:
        """
        取消訂閱。

        Args:
            event_name: 事件名稱
            callback: 指定回呼時只移除該回呼的所有訂閱，否則移除此事件的全部訂閱
        """
        subscriptions = self._subscriptions.get(event_name)
        if subscriptions is None:
            return
        if callback is None:
            del self._subscriptions[event_name]
            return
        subscriptions[:] = [s for s in subscriptions if s.callback != callback]

    def subscriptions(self, event_name: str) -> Tuple[Subscription, ...]:
        return tuple(self._subscriptions.get(event_name, ()))

    def clear(self) -> None:
        self._subscriptions.clear()

    def drain(self, queue: EventQueue) -> None:
        """
        依發出順序派發佇列中的事件，結束後無條件清空佇列。

        回呼拋出的例外不會被攔截。
        """
        try:
            for event in queue:
                self._deliver(event)
        finally:
            queue.clear()

    def _deliver(self, event: QueuedEvent) -> None:
        subscriptions = self._subscriptions.get(event.name)
        if not subscriptions:
            return

        payload = _UNSET
        for subscription in list(subscriptions):
            # 前一個回呼可能已經取消了這個訂閱
            if subscription not in self._subscriptions.get(event.name, ()):
                continue
            context = event.context
            if subscription.pattern is not None:
                params = subscription.pattern.match(event.path)
                if params is None:
                    continue
                if subscription.pattern.is_parametrized:
                    context = Map(params)

            # 只有真的有人接收時才取出 payload
            if payload is _UNSET:
                payload = event.payload()

            record: EventRecord = {
                "name": event.name,
                "payload": subscription.project(payload),
                "path": event.path,
                "context": context,
            }
            result = subscription.callback(record)
            if result is not SubscriberResult.KEEP and result:
                logger.debug("removing subscription %r after %s", subscription, event.name)
                with contextlib.suppress(ValueError):
                    self._subscriptions.get(event.name, []).remove(subscription)
