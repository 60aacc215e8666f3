"""
PathStoreX：以路徑定址的階層式狀態管理。
"""
from .errors import (
    PathStoreXError, ActionError, ReducerError, StoreError, SubscriptionError,
    ValidationError, ConfigurationError, RemoteError, ErrorHandler, global_error_handler
)
from .actions import Action, create_action, PATH_KEY, ERROR_KEY, INIT_PATH
from .reducers import Reducer, HandlerReducer, create_reducer, on, ReducerRegistry, ReducerBinding
from .paths import PathPattern, compile_pattern, split_path, join_path
from .events import Dispatcher, EventQueue, QueuedEvent, Subscription
from .remote import RemoteBridge, RemoteRoute
from .config import StoreConfig, RemoteConfig
from .store import Store, create_store
from .types import EventRecord, SubscriberResult
from .immutable_utils import ContainerKind, kind_of, to_immutable, to_dict

# 匯出所有公開 API
__all__ = [
    # Errors
    "PathStoreXError", "ActionError", "ReducerError", "StoreError", "SubscriptionError",
    "ValidationError", "ConfigurationError", "RemoteError", "ErrorHandler", "global_error_handler",

    # Actions
    "Action", "create_action", "PATH_KEY", "ERROR_KEY", "INIT_PATH",

    # Reducers
    "Reducer", "HandlerReducer", "create_reducer", "on", "ReducerRegistry", "ReducerBinding",

    # Paths
    "PathPattern", "compile_pattern", "split_path", "join_path",

    # Events
    "Dispatcher", "EventQueue", "QueuedEvent", "Subscription", "EventRecord", "SubscriberResult",

    # Remote
    "RemoteBridge", "RemoteRoute",

    # Store
    "Store", "create_store", "StoreConfig", "RemoteConfig",

    # Immutable Utils
    "ContainerKind", "kind_of", "to_immutable", "to_dict",
]
