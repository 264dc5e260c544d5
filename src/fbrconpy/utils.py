import inspect
from typing import Awaitable, Callable, ParamSpec, TypeVar

P = ParamSpec("P")
T = TypeVar("T")

MaybeCoroFunc = Callable[P, T | Awaitable[T]]


async def maybe_coro(
    func: MaybeCoroFunc[P, T],
    *args: P.args,
    **kwargs: P.kwargs,
) -> T:
    ret = func(*args, **kwargs)
    if inspect.isawaitable(ret):
        return await ret
    return ret  # type: ignore
