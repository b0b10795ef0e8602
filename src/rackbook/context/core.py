from __future__ import annotations

import enum
import threading
from functools import cached_property

from rackbook.modules import errors


from typing import Any
from typing import Literal
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime
    from sqlalchemy.orm import Session
    from sqlalchemy.orm.session import SessionTransaction
    from typing_extensions import TypeAlias

    from rackbook.context.notifier import Notifier
    from rackbook.context.session import SessionProvider
    from rackbook.context.task_board import TaskBoard


class _Marker(enum.Enum):
    missing = enum.auto()
    required = enum.auto()


missing_t: TypeAlias = Literal[_Marker.missing]  # noqa: PYI042
required_t: TypeAlias = Literal[_Marker.required]  # noqa: PYI042
missing: missing_t = _Marker.missing
required: required_t = _Marker.required


class StoppableService:
    """ A service holding resources, like the connections of the
    :class:`~rackbook.context.session.SessionProvider`.

    :meth:`stop_service` is called when the service is replaced on its
    context. It is not called when the process ends.

    """

    def stop_service(self) -> None:
        pass


class ContextServicesMixin:
    """ Gives the scheduler, the queries and the task board access to the
    services of their context (self.context).

    The notifier, the task board and the clock are cached until
    :meth:`clear_cache` is called.

    """

    context: Context

    @cached_property
    def notifier(self) -> Notifier:
        return self.context.get_service('notifier')  # type: ignore[no-any-return]

    @cached_property
    def task_board(self) -> TaskBoard:
        return self.context.get_service('task_board')  # type: ignore[no-any-return]

    @cached_property
    def now(self) -> Callable[[], datetime]:
        return self.context.get_service('clock')  # type: ignore[no-any-return]

    def clear_cache(self) -> None:
        """ Clears the cached services of the mixin. """

        for name in ('notifier', 'task_board', 'now'):
            self.__dict__.pop(name, None)

    @property
    def session_provider(self) -> SessionProvider:
        return self.context.get_service('session_provider')  # type: ignore[no-any-return]

    @property
    def session(self) -> Session:
        """ Returns the current session. """
        return self.session_provider.session()

    def close(self) -> None:
        """ Closes the current session. """
        self.session.close()

    @property
    def begin_nested(self) -> Callable[[], SessionTransaction]:
        return self.session.begin_nested

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


class Context:
    """ Holds the settings (like the dsn or the notification window) and
    the services (like the notifier or the clock) of one consumer of
    rackbook.

    Lookups the context can't answer itself are passed on to its parent,
    usually the master context of the registry. Schedulers cache the
    services they use, so after changing a service get a new
    :class:`~rackbook.db.scheduler.Scheduler` or call
    :meth:`~.ContextServicesMixin.clear_cache`::

        from rackbook import registry
        facility = registry.register_context('facility')
        facility.set_setting('hard_restriction_hours', 24)

    """

    def __init__(
        self,
        name: str,
        parent: Context | None = None,
        locked: bool = False
    ):
        self.name = name
        self.values: dict[str, Any] = {}
        self.parent = parent
        self.locked = locked
        self.thread_lock = threading.RLock()

    def __repr__(self) -> str:
        return f"<Rackbook Context(name='{self.name}')>"

    def lock(self) -> None:
        with self.thread_lock:
            self.locked = True

    def get(self, key: str) -> Any | missing_t:
        if key in self.values:
            return self.values[key]
        elif self.parent:
            return self.parent.get(key)
        else:
            return missing

    def set(self, key: str, value: Any) -> None:
        if self.locked:
            raise errors.ContextIsLocked

        with self.thread_lock:

            # replaced services release their resources right away
            if isinstance(self.values.get(key), StoppableService):
                self.values[key].stop_service()

            self.values[key] = value

    def get_setting(self, name: str) -> Any:
        return self.get(f'settings.{name}')

    def set_setting(self, name: str, value: Any) -> None:
        with self.thread_lock:
            self.set(f'settings.{name}', value)

    def get_service(self, name: str) -> Any:
        service_id = f'service/{name}'
        service = self.get(service_id)

        if service is missing:
            raise errors.UnknownService(service_id)

        cache_id = f'service/{name}/cache'
        cache = self.get(cache_id)

        # no cache
        if cache is missing:
            return service(self)
        else:
            # first call, cache it!
            if cache is required:
                self.set(cache_id, service(self))

            # nth call, use cached value
            return self.get(cache_id)

    def set_service(
        self,
        name: str,
        factory: Callable[..., Any],
        cache: bool = False
    ) -> None:
        with self.thread_lock:
            service_id = f'service/{name}'
            self.set(service_id, factory)

            if cache:
                cache_id = f'service/{name}/cache'
                self.set(cache_id, required)
