"""
PathStoreX 共用的型別定義。
"""
import enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Mapping, Optional, TypeVar, Union

from typing_extensions import Protocol, TypedDict

if TYPE_CHECKING:
    from .actions import Action

S = TypeVar("S")  # 狀態類型
P = TypeVar("P")  # 負載類型

# 遠端請求完成時呼叫，傳入要合併到 action payload 上的資料
Resolve = Callable[[Any], None]


class SubscriberResult(enum.Enum):
    """訂閱者回呼的回傳值：保留或移除這個訂閱。"""

    KEEP = "keep"
    REMOVE = "remove"


class EventRecord(TypedDict):
    """傳給訂閱者的事件內容。"""

    name: str
    payload: Any
    path: str
    context: Mapping[Any, Any]


class SubscriberCallback(Protocol):
    def __call__(self, event: EventRecord) -> Optional[Union[SubscriberResult, bool]]: ...


class RequestFunction(Protocol):
    """
    遠端請求函式。

    回傳假值表示不處理這個路徑，直接使用本地 payload；
    也可以回傳 awaitable，其結果會作為要合併的 payload。
    """

    def __call__(
        self,
        request_path: str,
        action: "Action[Any]",
        state: Any,
        resolve: Resolve,
    ) -> Union[bool, None, Awaitable[Any]]: ...
