"""
PathStoreX 錯誤處理模組。

定義所有 PathStoreX 異常的層級結構，以及集中式的錯誤處理器。
"""
import logging
import traceback
from typing import Any, Callable, Dict, List, Optional, Union

logger = logging.getLogger("pathstorex.errors")


class PathStoreXError(Exception):
    """所有 PathStoreX 異常的基礎類。"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        # 保存建立時的呼叫堆疊，方便事後回報
        self.traceback = "".join(traceback.format_stack()[:-1])

    def to_dict(self) -> Dict[str, Any]:
        """
        將錯誤轉換為可序列化的字典。

        Returns:
            包含錯誤類型、訊息與細節的字典
        """
        return {
            "type": type(self).__name__,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        if not self.details:
            return self.message
        detail_text = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
        return f"{self.message} ({detail_text})"


class ActionError(PathStoreXError):
    """與 Action 相關的錯誤。"""

    def __init__(self, message: str, action_name: Any = None, payload: Any = None, **kwargs: Any):
        details = {"action_name": action_name, **kwargs}
        if payload is not None:
            details["payload"] = payload
        super().__init__(message, details)


class ReducerError(PathStoreXError):
    """與 Reducer 相關的錯誤。"""

    def __init__(self, message: str, reducer_name: str, path: Optional[str] = None, **kwargs: Any):
        super().__init__(message, {"reducer_name": reducer_name, "path": path, **kwargs})


class StoreError(PathStoreXError):
    """與 Store 相關的錯誤。"""

    def __init__(self, message: str, operation: str, **kwargs: Any):
        super().__init__(message, {"operation": operation, **kwargs})


class SubscriptionError(PathStoreXError):
    """訂閱參數不正確時拋出。"""

    def __init__(self, message: str, event_name: Any = None, **kwargs: Any):
        super().__init__(message, {"event_name": event_name, **kwargs})


class ValidationError(PathStoreXError):
    """資料驗證錯誤。"""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Any = None,
        expected_type: Optional[str] = None,
        **kwargs: Any,
    ):
        super().__init__(
            message,
            {"field": field, "value": value, "expected_type": expected_type, **kwargs},
        )


class ConfigurationError(PathStoreXError):
    """配置相關的錯誤。"""

    def __init__(self, message: str, component: str, config_key: Optional[str] = None, **kwargs: Any):
        super().__init__(message, {"component": component, "config_key": config_key, **kwargs})


class RemoteError(PathStoreXError):
    """遠端請求失敗時使用，會被轉換成帶有錯誤標記的 payload。"""

    def __init__(self, message: str, request_path: str, action_name: Optional[str] = None, **kwargs: Any):
        super().__init__(
            message,
            {"request_path": request_path, "action_name": action_name, **kwargs},
        )


class ErrorHandler:
    """
    集中式錯誤處理器，用於捕獲、日誌記錄和錯誤報告。

    Args:
        log_to_console: 是否透過 logging 輸出錯誤
        log_to_file: 是否額外寫入檔案
        log_file: 日誌檔案路徑
    """

    def __init__(self, log_to_console: bool = True, log_to_file: bool = False, log_file: Optional[str] = None):
        self.log_to_console = log_to_console
        self.log_to_file = log_to_file
        self.log_file = log_file
        self.handlers: List[Callable[[PathStoreXError], None]] = []
        self._file_logger: Optional[logging.Logger] = None

        if log_to_file and log_file:
            self._file_logger = logging.getLogger(f"pathstorex.errors.file.{id(self)}")
            self._file_logger.propagate = False
            self._file_logger.addHandler(logging.FileHandler(log_file, encoding="utf-8"))

    def register_handler(self, handler: Callable[[PathStoreXError], None]) -> None:
        """註冊一個額外的錯誤回呼，例如上報到監控系統。"""
        self.handlers.append(handler)

    def handle(self, error: Union[PathStoreXError, Exception]) -> None:
        """
        處理一個錯誤：包裝為 PathStoreXError、記錄日誌並通知所有回呼。

        Args:
            error: 要處理的錯誤
        """
        if not isinstance(error, PathStoreXError):
            wrapped = PathStoreXError(str(error), {"original_type": type(error).__name__})
            wrapped.__cause__ = error
            error = wrapped

        if self.log_to_console:
            logger.error("%s: %s", type(error).__name__, error)
        if self._file_logger is not None:
            self._file_logger.error("%s: %s", type(error).__name__, error)

        for handler in self.handlers:
            handler(error)


# 單例錯誤處理器
global_error_handler = ErrorHandler()
