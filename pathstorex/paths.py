"""
路徑樣板模組。

把 `users/:id` 這類路徑樣板編譯成正規表達式（比對具體路徑並取出參數），
同時提供反向編譯（參數代入樣板產生具體路徑）。語法：

- 字面片段：`users`
- 具名參數：`:id`，可帶自訂樣式 `:id(\\d+)`
- 未具名群組：`(users|groups)`，參數名稱為出現順序的整數
- 修飾符：`?` 可省略、`*` 零或多次、`+` 一或多次
- 萬用字元：單獨的 `*`
"""
import functools
import re
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Tuple, Union

from .errors import ValidationError

DELIMITER = "/"
DEFAULT_PATTERN = "[^/]+?"

# 1: 跳脫字元 2: 參數名稱 3: 參數樣式 4: 未具名群組 5: 修飾符 6: 萬用字元
_TOKEN_RE = re.compile(
    r"(\\.)"
    r"|(?:\:(\w+)(?:\(((?:\\.|[^\\()])+)\))?|\(((?:\\.|[^\\()])+)\))([+*?])?"
    r"|(\*)"
)


class PathKey(NamedTuple):
    """樣板中的一個參數片段。"""

    name: Union[str, int]
    prefix: str
    optional: bool
    repeat: bool
    pattern: str


Token = Union[str, PathKey]


def split_path(path: str) -> List[str]:
    """把路徑切成片段，忽略空片段。"""
    return [step for step in path.split(DELIMITER) if step]


def join_path(*steps: Any) -> str:
    """把片段接回路徑。"""
    return DELIMITER.join(str(step) for step in steps if step != "")


def _parse(path: str) -> List[Token]:
    tokens: List[Token] = []
    key_index = 0
    index = 0
    buffer = ""

    for match in _TOKEN_RE.finditer(path):
        escaped, name, capture, group, modifier, asterisk = match.groups()
        buffer += path[index:match.start()]
        index = match.end()

        if escaped:
            buffer += escaped[1]
            continue

        prefix = ""
        if buffer.endswith(DELIMITER):
            prefix = DELIMITER
            buffer = buffer[:-1]
        if buffer:
            tokens.append(buffer)
            buffer = ""

        if name is None:
            name = key_index
            key_index += 1

        tokens.append(PathKey(
            name=name,
            prefix=prefix,
            optional=modifier in ("?", "*"),
            repeat=modifier in ("+", "*"),
            pattern=capture or group or (".*" if asterisk else DEFAULT_PATTERN),
        ))

    buffer += path[index:]
    if buffer:
        tokens.append(buffer)
    return tokens


def _to_regex(tokens: List[Token], end: bool, strict: bool) -> str:
    route = ""
    for token in tokens:
        if isinstance(token, str):
            route += re.escape(token)
            continue

        prefix = re.escape(token.prefix)
        capture = f"(?:{token.pattern})"
        if token.repeat:
            capture += f"(?:{prefix}{capture})*"
        if token.optional:
            route += f"(?:{prefix}({capture}))?"
        else:
            route += f"{prefix}({capture})"

    delimiter = re.escape(DELIMITER)
    if end:
        if not strict:
            route += f"(?:{delimiter})?"
        route += "$"
    else:
        if not strict:
            route += f"(?:{delimiter}(?=$))?"
        route += f"(?={delimiter}|$)"
    return "^" + route


class PathPattern:
    """
    編譯後的路徑樣板。

    Args:
        path: 路徑樣板字串
        end: 是否必須比對到路徑結尾；False 時只比對前綴
        strict: 是否拒絕多餘的結尾斜線
        sensitive: 是否區分大小寫
    """

    def __init__(self, path: str, end: bool = True, strict: bool = False, sensitive: bool = True):
        self.path = path
        self.end = end
        self._tokens = _parse(path)
        self.keys: Tuple[Union[str, int], ...] = tuple(
            token.name for token in self._tokens if isinstance(token, PathKey)
        )
        self.regex = re.compile(
            _to_regex(self._tokens, end, strict),
            0 if sensitive else re.IGNORECASE,
        )
        self._validators = {
            token.name: re.compile(f"^(?:{token.pattern})$")
            for token in self._tokens
            if isinstance(token, PathKey)
        }

    @property
    def is_parametrized(self) -> bool:
        return bool(self.keys)

    def test(self, path: str) -> bool:
        return self.regex.match(path) is not None

    def match(self, path: str) -> Optional[Dict[Union[str, int], str]]:
        """
        比對具體路徑。

        Returns:
            參數名稱到值的字典；不符合時回傳 None。未出現的可省略參數不會列入。
        """
        result = self.regex.match(path)
        if result is None:
            return None
        return {
            key: value
            for key, value in zip(self.keys, result.groups())
            if value is not None
        }

    def to_path(self, params: Optional[Mapping[Any, Any]] = None) -> str:
        """
        把參數代入樣板，產生具體路徑。

        Args:
            params: 參數名稱到值的對應，多出來的鍵會被忽略

        Returns:
            具體路徑字串

        Raises:
            ValidationError: 缺少必要參數或參數值不符合樣式
        """
        params = params or {}
        path = ""
        for token in self._tokens:
            if isinstance(token, str):
                path += token
                continue

            value = params.get(token.name)
            if value is None:
                if token.optional:
                    continue
                raise ValidationError(
                    f'Expected "{token.name}" to be defined for path "{self.path}"',
                    field=str(token.name),
                )

            if isinstance(value, (list, tuple)):
                if not token.repeat:
                    raise ValidationError(
                        f'Expected "{token.name}" to not repeat in path "{self.path}"',
                        field=str(token.name),
                        value=value,
                    )
                segments = [str(item) for item in value]
            else:
                segments = [str(value)]

            for i, segment in enumerate(segments):
                if not self._validators[token.name].match(segment):
                    raise ValidationError(
                        f'Expected "{token.name}" to match "{token.pattern}"',
                        field=str(token.name),
                        value=segment,
                        expected_type=token.pattern,
                    )
                path += (token.prefix if i == 0 else DELIMITER) + segment
        return path

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PathPattern):
            return NotImplemented
        return self.path == other.path and self.end == other.end and self.regex == other.regex

    def __hash__(self) -> int:
        return hash((self.path, self.end, self.regex.pattern))

    def __repr__(self) -> str:
        return f"PathPattern({self.path!r})"


@functools.lru_cache(maxsize=512)
def compile_pattern(path: str, end: bool = True) -> PathPattern:
    """帶快取的 PathPattern 建構函式，同一個樣板只會編譯一次。"""
    return PathPattern(path, end=end)
