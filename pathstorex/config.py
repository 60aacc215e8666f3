"""
Store 的配置模型。
"""
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from .errors import ConfigurationError
from .reducers import Reducer


class RemoteConfig(BaseModel):
    """遠端資料來源設定：哪些路徑需要請求，以及請求函式。"""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    paths: List[str] = Field(min_length=1)
    request: Callable[..., Any]


class StoreConfig(BaseModel):
    """
    Store 的配置。

    Attributes:
        reducers: 路徑樣板到 Reducer 實例的對應，每個實例只能用在一個路徑
        remote: 可選的遠端設定
        verbose: 是否輸出路徑解析與請求的追蹤訊息
        dispatch_actions: 是否在目標路徑上額外發出以 action 名稱為名的事件
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, populate_by_name=True)

    reducers: Dict[str, Reducer] = Field(default_factory=dict)
    remote: Optional[RemoteConfig] = None
    verbose: bool = False
    dispatch_actions: bool = Field(True, alias="dispatchActions")

    @field_validator("reducers", mode="before")
    @classmethod
    def _check_reducers(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, Mapping):
            for path, reducer in value.items():
                if not isinstance(reducer, Reducer):
                    raise ConfigurationError(
                        f"Property at path: {path} is not a Reducer instance!",
                        component="reducers",
                        config_key=path,
                    )
            # 保持原本的實例，不要讓 pydantic 複製
            return dict(value)
        return value


def load_config(config: Union[StoreConfig, Mapping[str, Any], None] = None, **options: Any) -> StoreConfig:
    """
    把字典或關鍵字參數轉換為 StoreConfig。

    Raises:
        ConfigurationError: 設定內容不合法
    """
    if isinstance(config, StoreConfig):
        if options:
            return config.model_copy(update=options)
        return config

    data: Dict[str, Any] = dict(config or {})
    data.update(options)
    try:
        return StoreConfig.model_validate(data)
    except ConfigurationError:
        raise
    except PydanticValidationError as err:
        first = err.errors()[0] if err.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        component = location.split(".", 1)[0] or "store"
        if component == "remote":
            message = (
                "remote requires paths where a server connection is expected "
                "and a request function to give data back"
            )
        else:
            message = f"invalid store configuration: {first.get('msg', err)}"
        raise ConfigurationError(message, component=component, config_key=location) from err
