"""
Graph — run a nodnod node with its dependencies auto-discovered.

    from evergreen import graph as G

    @G.node
    class CartNode:
        def __init__(self, data: Cart) -> None:
            self.data = data

        @classmethod
        async def __compose__(cls, request: CheckoutRequest, env: CheckoutEnv) -> "CartNode":
            return cls(await env.repo.carts.get(request.user_id))

    draft = await G.run(DraftNode).inject(request).inject(env)

Independent nodes run concurrently. An exception raised inside a node
propagates out of the run unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, cast

from nodnod import EventLoopAgent, Node, Scope, Value
from nodnod import scalar_node as node


@dataclass(frozen=True, slots=True)
class Run[T]:
    """Awaitable builder: target node plus injected values."""

    _target: type[T]
    _injections: tuple[tuple[type[Any], Any], ...] = ()

    def inject(self, value: object) -> Run[T]:
        """Inject under the value's runtime type."""
        return self.inject_as(cast(type[Any], type(value)), value)

    def inject_as[V](self, typ: type[V], value: V) -> Run[T]:
        """Inject under an explicit type (protocols, base classes)."""
        return Run(self._target, (*self._injections, (typ, value)))

    def __await__(self) -> Any:
        return self._execute().__await__()

    async def _execute(self) -> T:
        agent = EventLoopAgent.build({cast(type[Node[Any, Any]], self._target)})

        async with Scope(detail="evergreen") as scope:
            for typ, value in self._injections:
                scope.push(Value(typ, value))
            await agent.run(scope, {})

            result = scope.get(self._target)
            if result is None:
                raise KeyError(f"{self._target.__name__} was not composed")
            return cast(T, result.value)


def run[T](target: type[T]) -> Run[T]:
    return Run(target)


__all__ = ("node", "Run", "run")
