# pathstorex/immutable_utils.py
"""
不可變容器工具。

Store 樹的每個節點都是 `immutables.Map`（映射）或 `tuple`（序列），
其他值視為葉節點。`ContainerKind` 是節點的標記型別，合併規則依此決定。
"""
import enum
from collections.abc import Mapping
from typing import Any, Iterable, Iterator, Optional, Tuple

from immutables import Map
from pydantic import BaseModel


class ContainerKind(enum.Enum):
    """節點的容器種類。"""

    MAP = "map"
    SEQUENCE = "sequence"
    SCALAR = "scalar"


def kind_of(obj: Any) -> ContainerKind:
    """判斷一個值屬於哪一種容器。"""
    if isinstance(obj, (Map, Mapping, BaseModel)):
        return ContainerKind.MAP
    if isinstance(obj, (list, tuple)):
        return ContainerKind.SEQUENCE
    return ContainerKind.SCALAR


def to_immutable(obj: Any) -> Any:
    """將任何對象轉換為不可變形式 (包括 Pydantic 模型)"""
    if isinstance(obj, Map):
        return obj
    if isinstance(obj, BaseModel):
        # Pydantic 模型轉為 Map
        return Map({k: to_immutable(v) for k, v in obj.model_dump().items()})
    if isinstance(obj, Mapping):
        return Map({k: to_immutable(v) for k, v in obj.items()})
    if isinstance(obj, list):
        # 列表轉為元組
        return tuple(to_immutable(i) for i in obj)
    if isinstance(obj, tuple):
        converted = tuple(to_immutable(i) for i in obj)
        # 元素都沒變時沿用原本的元組，保留身分
        if all(a is b for a, b in zip(converted, obj)):
            return obj
        return converted
    if isinstance(obj, set):
        return frozenset(to_immutable(i) for i in obj)
    return obj


def to_dict(obj: Any) -> Any:
    """將 Map 及其巢狀結構轉換為普通字典"""
    if isinstance(obj, Map):
        return {k: to_dict(v) for k, v in obj.items()}
    elif isinstance(obj, tuple):
        return [to_dict(i) for i in obj]
    elif isinstance(obj, frozenset):
        return {to_dict(i) for i in obj}
    return obj


def _index(key: Any) -> Optional[int]:
    if isinstance(key, int):
        return key
    if isinstance(key, str) and key.isdigit():
        return int(key)
    return None


def get_member(node: Any, key: Any) -> Any:
    """
    取得容器中的子節點。

    序列以整數或數字字串作為索引，越界或不存在時回傳 None。
    """
    kind = kind_of(node)
    if isinstance(node, BaseModel):
        return getattr(node, str(key), None)
    if kind is ContainerKind.MAP:
        if key in node:
            return node[key]
        # 路徑片段一律是字串，序列化過的整數鍵也要能找到
        index = _index(key)
        if index is not None and not isinstance(key, int):
            return node.get(index)
        return None
    if kind is ContainerKind.SEQUENCE:
        index = _index(key)
        if index is None or index >= len(node):
            return None
        return node[index]
    return None


def set_member(node: Any, key: Any, value: Any) -> Any:
    """
    回傳一個把 key 設為 value 的新容器，原容器不變。

    葉節點或 None 會被整個替換為新的 Map。
    """
    kind = kind_of(node)
    if kind is ContainerKind.SEQUENCE:
        index = _index(key)
        if index is not None:
            items = list(node)
            if index >= len(items):
                items.extend([None] * (index + 1 - len(items)))
            items[index] = value
            return tuple(items)
        # 非數字鍵無法寫入序列，改以映射承接
        node = Map(enumerate(node))
    elif kind is ContainerKind.SCALAR:
        node = Map()
    elif not isinstance(node, Map):
        node = to_immutable(node)
    return node.set(key, value)


def members(node: Any) -> Iterator[Tuple[Any, Any]]:
    """依序產生容器的 (鍵, 值)；葉節點不產生任何項目。"""
    kind = kind_of(node)
    if kind is ContainerKind.MAP:
        if isinstance(node, BaseModel):
            node = node.model_dump()
        yield from node.items()
    elif kind is ContainerKind.SEQUENCE:
        yield from enumerate(node)


def get_in(node: Any, keys: Iterable[Any]) -> Any:
    """沿著一串鍵往下取值，任何一層不存在就回傳 None。"""
    for key in keys:
        if node is None:
            return None
        node = get_member(node, key)
    return node


def merge_containers(state: Any, payload: Any) -> Any:
    """
    預設的淺層合併規則。

    - payload 為 None：state 不變
    - 種類不同或 payload 是葉節點：payload 整個取代 state
    - 映射：鍵的聯集，衝突時以 payload 為準
    - 序列：依 payload 的索引逐一取代，超出 payload 長度的舊元素保留
    """
    if payload is None:
        return state
    payload = to_immutable(payload)
    kind = kind_of(payload)
    if kind is ContainerKind.SCALAR or kind_of(state) is not kind:
        return payload
    if kind is ContainerKind.MAP:
        return to_immutable(state).update(payload)
    state = to_immutable(state)
    return tuple(payload) + tuple(state[len(payload):])


def merge_payloads(base: Any, extra: Any) -> Any:
    """把 extra 合併在 base 之上，兩者都是映射時取聯集，否則 extra 為準。"""
    if extra is None:
        return base
    if kind_of(base) is ContainerKind.MAP and kind_of(extra) is ContainerKind.MAP:
        return to_immutable(base).update(to_immutable(extra))
    return to_immutable(extra)


__all__ = [
    "ContainerKind",
    "kind_of",
    "to_immutable",
    "to_dict",
    "get_member",
    "set_member",
    "members",
    "get_in",
    "merge_containers",
    "merge_payloads",
]
