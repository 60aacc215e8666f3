"""
更新引擎。

一次更新分為兩個階段：

1. Branch：沿著 action 的目標路徑由上而下，每一層解析符合的 reducers 並依序套用，
   只有最後一層會收到 payload。
2. Tree：目標節點完成後，走訪 payload 本身的巢狀結構（映射或序列），
   在每個子路徑重新解析 reducers，讓一個 action 能更新目標底下的路徑。

整個過程不修改舊的樹，回傳新的根節點，由 Store 在成功後一次提交。
"""
import logging
from typing import Any, Callable, List, Mapping, Tuple

from immutables import Map

from .actions import INIT_PATH, PATH_KEY, Action
from .errors import StoreError
from .events import EventQueue
from .immutable_utils import ContainerKind, get_member, kind_of, members, set_member, to_immutable
from .paths import join_path, split_path
from .reducers import Reducer, ReducerRegistry

logger = logging.getLogger("pathstorex.engine")


class PassContext:
    """
    單次更新的狀態，明確地在各階段之間傳遞。

    Attributes:
        action: 正在執行的 Action（payload 已經過遠端合併）
        target: 具體目標路徑
        steps: 目標路徑的片段
        events: 這次更新的事件佇列
        node_accessor: 給定路徑，回傳讀取提交後節點的函式
        path: 目前正在執行 reducer 的路徑
        context: 目前路徑累積的 context
        action_dispatched: 是否已經發出以 action 名稱為名的事件
    """

    def __init__(
        self,
        action: Action[Any],
        target: str,
        events: EventQueue,
        node_accessor: Callable[[str], Callable[[], Any]],
    ):
        self.action = action
        self.target = target
        self.steps: List[str] = split_path(target)
        self.events = events
        self.node_accessor = node_accessor
        self.path = ""
        self.context: Mapping[Any, Any] = action.context
        self.action_dispatched = False

    def emit(self, name: str) -> None:
        """以目前的路徑與 context 加入一個事件。"""
        self.events.emit(name, self.path, self.context, self.node_accessor(self.path))


class UpdateEngine:
    """
    執行 Branch 與 Tree 兩個階段的更新。

    Args:
        registry: reducer 索引
        default_reducer: 沒有任何 reducer 符合時使用的預設 reducer
        dispatch_actions: 是否在目標路徑發出以 action 名稱為名的事件
        verbose: 是否以 INFO 等級輸出路徑解析追蹤
    """

    def __init__(
        self,
        registry: ReducerRegistry,
        default_reducer: Reducer,
        dispatch_actions: bool = True,
        verbose: bool = False,
    ):
        self.registry = registry
        self.default_reducer = default_reducer
        self.dispatch_actions = dispatch_actions
        self.verbose = verbose

    def _trace(self, message: str, *args: Any) -> None:
        logger.log(logging.INFO if self.verbose else logging.DEBUG, message, *args)

    def run(self, root: Any, ctx: PassContext) -> Any:
        """
        對根節點執行一次完整更新。

        Returns:
            新的根節點
        """
        if root is None:
            root = Map()
        if not ctx.steps:
            root = self._reduce_subtree(root, ctx, "", ctx.action.payload, ctx.action.context)
            if kind_of(root) is not ContainerKind.MAP:
                raise StoreError(
                    "the root node can only be replaced by a map",
                    operation="do",
                    action_name=ctx.action.name,
                    payload_type=type(root).__name__,
                )
            return root
        return self._branch(root, ctx, 0, ctx.action.context)

    def _branch(self, node: Any, ctx: PassContext, depth: int, context: Mapping[Any, Any]) -> Any:
        step = ctx.steps[depth]
        path = join_path(*ctx.steps[:depth + 1])
        child = get_member(node, step)

        if depth + 1 == len(ctx.steps):
            # 目標節點：套用 payload，再往 payload 的巢狀結構延伸
            child = self._reduce_subtree(child, ctx, path, ctx.action.payload, context)
        else:
            # 中間節點只是結構，不帶 payload
            child, child_context = self._reduce_at(child, ctx, path, None, context)
            child = self._branch(child, ctx, depth + 1, child_context)

        return set_member(node, step, child)

    def _reduce_subtree(self, node: Any, ctx: PassContext, path: str, payload: Any, context: Mapping[Any, Any]) -> Any:
        """先在 path 上套用 reducers，再處理 payload 中的每個結構化成員（父先於子）。"""
        new_node, context = self._reduce_at(node, ctx, path, payload, context)

        for key, member in members(payload):
            if kind_of(member) is ContainerKind.SCALAR:
                continue
            child = get_member(new_node, key)
            if child is member:
                # 父層只是原樣複製了 payload 成員，子層應該從更新前的節點開始
                child = get_member(node, key)
            child = self._reduce_subtree(child, ctx, join_path(path, key), member, context)
            new_node = set_member(new_node, key, child)
        return new_node

    def _reduce_at(
        self,
        state: Any,
        ctx: PassContext,
        path: str,
        payload: Any,
        context: Mapping[Any, Any],
    ) -> Tuple[Any, Mapping[Any, Any]]:
        """
        在一個具體路徑上解析並依序套用 reducers。

        Returns:
            (新節點, 此路徑累積後的 context)
        """
        bindings = self.registry.resolve(path)
        reducers = [binding.reducer for binding in bindings] or [self.default_reducer]
        self._trace("reducers for %r: %s", path, reducers)

        # 依註冊順序合併路徑參數，後註冊的同名參數覆蓋先前的
        for binding in bindings:
            if binding.pattern.is_parametrized:
                context = context.update(binding.pattern.match(path) or {})
        context = context.set(PATH_KEY, ctx.target)

        action = ctx.action.replace(context=context)
        ctx.path = path
        ctx.context = context

        if state is None:
            state = self._initialize(reducers[0], action, ctx)

        for reducer in reducers:
            # 以 action 名稱為名的事件只在目標路徑發出一次
            if self.dispatch_actions and not ctx.action_dispatched and path == ctx.target:
                ctx.emit(action.name)
                ctx.action_dispatched = True
            state = to_immutable(reducer.reduce(action, state, payload))

        return state, context

    def _initialize(self, reducer: Reducer, action: Action[Any], ctx: PassContext) -> Any:
        """第一次寫入路徑時，用合成的 init action 建立 reducer 的預設狀態，期間的事件全部丟棄。"""
        init = Action(INIT_PATH, None, action.context, reducer)
        with ctx.events.suppressed():
            state = reducer.reduce(init, None, None)
        return to_immutable(state)
