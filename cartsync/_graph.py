"""
Graph runner over nodnod.

    from cartsync import _graph as G

    @G.node
    class LoadRemote:
        @classmethod
        async def __compose__(cls, req: MergeRequest) -> "LoadRemote":
            ...

    node = await G.resolve(LoadRemote, req)

Dependencies are discovered from each node's __compose__ signature;
independent nodes resolve concurrently.
"""

from __future__ import annotations

from collections.abc import Callable, Coroutine
from typing import Any, cast

from nodnod import EventLoopAgent, Node, Scope, Value
from nodnod import scalar_node as node

type _AgentRun = Callable[[Scope, dict[type[Any], Scope]], Coroutine[Any, Any, None]]


async def resolve[T](target: type[T], *inputs: object) -> T:
    """
    Resolve target with inputs available under their runtime types.

    Raises LookupError if the graph finished without producing target.
    """
    agent = EventLoopAgent.build({cast(type[Node[Any, Any]], target)})
    run = cast(_AgentRun, getattr(agent, "run"))

    scope = Scope(detail=f"cartsync:{target.__name__}")
    async with scope:
        for value in inputs:
            scope.push(Value(type(value), value))
        await run(scope, {})

        resolved = scope.get(target)
        if resolved is None:
            raise LookupError(f"graph did not resolve {target.__name__}")
        return cast(T, resolved.value)


__all__ = ("node", "resolve")
