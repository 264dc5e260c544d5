from __future__ import annotations

import functools
import inspect
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Generic,
    ParamSpec,
    Type,
    TypeVar,
    overload,
)

if TYPE_CHECKING:
    from typing_extensions import Self

    from .dispatch import EventDispatcher

P = ParamSpec("P")
T = TypeVar("T")


class TypedEvent(Generic[P, T]):
    """A descriptor declaring one event of an :py:class:`EventDispatcher`.

    Accessed from a dispatcher instance, this returns a
    :py:class:`BoundTypedEvent` that registers listeners when called
    and dispatches the event through :py:meth:`BoundTypedEvent.fire()`,
    with both checked against the signature of the declaring function.

    Use the :py:func:`typed_event` decorator rather than this class directly.

    """

    event: str
    """The listener name of the event, e.g. ``"on_login"``."""

    def __set_name__(self, owner: Type[EventDispatcher], name: str) -> None:
        self.event = name

    @overload
    def __get__(self, instance: None, owner: Any = None) -> "Self": ...

    @overload
    def __get__(
        self,
        instance: EventDispatcher,
        owner: Any = None,
    ) -> BoundTypedEvent[P, T]: ...

    def __get__(
        self,
        instance: EventDispatcher | None,
        owner: Type[EventDispatcher] | None = None,
    ) -> BoundTypedEvent[P, T] | Self:
        if instance is None:
            return self
        return BoundTypedEvent(instance, self.event)


class BoundTypedEvent(Generic[P, T]):
    """A :py:class:`TypedEvent` bound to a specific dispatcher."""

    __slots__ = ("dispatch", "dispatch_event", "event")

    dispatch: EventDispatcher
    """The dispatcher that this is bound to."""
    dispatch_event: str
    """Same as :py:attr:`event` but without the "on_" prefix."""
    event: str
    """The listener name of the event, e.g. ``"on_login"``."""

    def __init__(self, dispatch: EventDispatcher, event: str) -> None:
        self.dispatch = dispatch
        self.event = event
        self.dispatch_event = event.removeprefix("on_")

    def __call__(self, callback: Callable[P, T]) -> Callable[P, T]:
        self.dispatch.add_listener(self.event, callback)
        return callback

    def fire(self, *args: P.args, **kwargs: P.kwargs) -> None:
        return self.dispatch(self.dispatch_event, *args, **kwargs)

    def remove(self, callback: Callable[P, T]) -> None:
        return self.dispatch.remove_listener(self.event, callback)


def typed_event(func: Callable[P, T], /) -> TypedEvent[P, T]:
    """Declares an event on an :py:class:`EventDispatcher` subclass.

    The event name is taken from the decorated function, which also
    documents the arguments given to listeners of the event.
    :py:func:`staticmethod()` should be applied under this decorator.

    """
    new_event = TypedEvent[P, T]()
    functools.update_wrapper(new_event, func)

    # Keeping __wrapped__ would make inspect.signature() skip our override
    del new_event.__wrapped__  # type: ignore
    new_event.__signature__ = inspect.signature(func)  # type: ignore

    return new_event
