"""
遠端資料橋接。

當 action 的目標路徑符合某個遠端路由時，先呼叫外部提供的請求函式，
等待資料回來並合併到 payload 之後，才開始更新 Store。
"""
import asyncio
import inspect
import logging
from typing import Any, Callable, Iterable, List, Mapping, Optional

from immutables import Map

from .actions import ERROR_KEY, PATH_KEY, Action
from .errors import ErrorHandler, RemoteError, global_error_handler
from .immutable_utils import ContainerKind, kind_of, merge_payloads, to_immutable
from .paths import PathPattern
from .types import RequestFunction

logger = logging.getLogger("pathstorex.remote")


class RemoteRoute:
    """
    可以向外部取得資料的路徑樣板，比對時只需符合前綴。

    Args:
        path: 路徑樣板，例如 `items/:id`
    """

    def __init__(self, path: str):
        self.original_path = path
        self.pattern = PathPattern(path, end=False)

    def test(self, path: str) -> bool:
        return self.pattern.test(path)

    def request_path(self, path: str, context: Optional[Mapping[Any, Any]] = None) -> str:
        """
        產生請求路徑：以目標路徑比對出的參數為基礎，context 中的同名參數優先。
        """
        params = dict(self.pattern.match(path) or {})
        if context:
            params.update({k: v for k, v in context.items() if k != PATH_KEY})
        return self.pattern.to_path(params)

    def __repr__(self) -> str:
        return f"RemoteRoute({self.original_path!r})"


def error_payload(payload: Any, error: BaseException) -> Any:
    """在 payload 上加入錯誤標記；payload 不是映射時只保留錯誤標記。"""
    marker = Map({"type": type(error).__name__, "message": str(error)})
    if kind_of(payload) is ContainerKind.MAP:
        return to_immutable(payload).set(ERROR_KEY, marker)
    return Map({ERROR_KEY: marker})


class RemoteBridge:
    """
    依照路由決定是否需要遠端請求，並把結果交給 Store。

    Args:
        paths: 路由樣板列表，會依樣板長度由長到短排序
        request: 外部請求函式
        verbose: 是否以 INFO 等級輸出請求追蹤
        error_handler: 請求失敗時使用的錯誤處理器
    """

    def __init__(
        self,
        paths: Iterable[str],
        request: RequestFunction,
        verbose: bool = False,
        error_handler: Optional[ErrorHandler] = None,
    ):
        # 較長的樣板較具體，優先比對
        self.routes: List[RemoteRoute] = [
            RemoteRoute(path) for path in sorted(paths, key=len, reverse=True)
        ]
        self.request = request
        self.verbose = verbose
        self.error_handler = error_handler or global_error_handler

    def _trace(self, message: str, *args: Any) -> None:
        logger.log(logging.INFO if self.verbose else logging.DEBUG, message, *args)

    def match(self, path: str) -> Optional[RemoteRoute]:
        """回傳第一個（最具體的）符合路徑的路由，沒有時為 None。"""
        for route in self.routes:
            if route.test(path):
                return route
        return None

    def fetch(self, path: str, action: Action[Any], state: Any, on_ready: Callable[[Any], None]) -> None:
        """
        取得此 action 要使用的 payload，完成時呼叫 on_ready(payload) 恰好一次。

        沒有符合的路由、請求函式回傳假值或請求失敗時都會呼叫 on_ready，
        所以更新週期一定會完成。

        Args:
            path: 具體目標路徑
            action: 要執行的 Action
            state: 目標路徑目前的節點
            on_ready: 取得 payload 後的回呼
        """
        route = self.match(path)
        if route is None:
            on_ready(action.payload)
            return

        done = False
        request_path = route.original_path

        def finish(payload: Any) -> None:
            nonlocal done
            if done:
                logger.warning("request for %s resolved more than once, ignoring", request_path)
                return
            done = True
            self._trace("request result for %s: %r", request_path, payload)
            on_ready(payload)

        def resolve(payload: Any = None) -> None:
            finish(merge_payloads(action.payload, payload))

        def fail(error: BaseException) -> None:
            self.error_handler.handle(RemoteError(
                f"remote request failed: {error}",
                request_path=request_path,
                action_name=action.name,
                error_type=type(error).__name__,
            ))
            finish(error_payload(action.payload, error))

        handled = None
        try:
            request_path = route.request_path(path, action.context)
            self._trace("requesting %s for %s (%s)", request_path, path, action.name)
            handled = self.request(request_path, action, state, resolve)
            if inspect.isawaitable(handled):
                # 沒有執行中的事件迴圈時拋出 RuntimeError，視為請求失敗
                loop = asyncio.get_running_loop()
                task = asyncio.ensure_future(handled, loop=loop)
        except Exception as err:
            if inspect.iscoroutine(handled):
                handled.close()
            fail(err)
            return

        if inspect.isawaitable(handled):

            def on_done(fut: "asyncio.Future[Any]") -> None:
                if fut.cancelled():
                    fail(asyncio.CancelledError())
                elif fut.exception() is not None:
                    fail(fut.exception())
                elif done:
                    return
                elif fut.result():
                    resolve(fut.result())
                else:
                    # 非同步請求同樣以假值表示不處理
                    finish(action.payload)

            task.add_done_callback(on_done)
        elif not handled and not done:
            # 請求函式表示不處理，使用原本的 payload
            finish(action.payload)
