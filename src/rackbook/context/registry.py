from __future__ import annotations

import threading

from rackbook.modules import errors
from rackbook.context.core import Context


from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime


def create_default_registry() -> Registry:
    """ Creates the default registry for rackbook. """

    import sedate

    from rackbook.context.registry import Registry
    from rackbook.context.notifier import Notifier
    from rackbook.context.session import SessionProvider
    from rackbook.context.settings import set_default_settings
    from rackbook.context.task_board import TaskBoard

    registry = Registry()

    def session_provider(context: Context) -> SessionProvider:
        return SessionProvider(context.get_setting('dsn'))

    def notifier_factory(context: Context) -> Notifier:
        return Notifier()

    def task_board_factory(context: Context) -> TaskBoard:
        return TaskBoard(context)

    def clock_factory(context: Context) -> Callable[[], datetime]:
        return sedate.utcnow

    master = registry.master_context
    assert master is not None
    master.set_service('session_provider', session_provider, cache=True)
    master.set_service('notifier', notifier_factory)
    master.set_service('task_board', task_board_factory)
    master.set_service('clock', clock_factory)

    set_default_settings(master)

    master.lock()

    return registry


class Registry:
    """ Holds the contexts of all consumers of rackbook. Every context
    inherits the settings and services of the master context.

    A global registry instance is found in rackbook::

        from rackbook import registry

    Though if global state is something you need to avoid, you can create
    your own version of the registry::

        from rackbook.context.registry import create_default_registry
        registry = create_default_registry()

    """

    contexts: dict[str, Context]
    master_context: Context | None = None

    def __init__(self) -> None:
        self.thread_lock = threading.RLock()

        with self.thread_lock:
            self.contexts = {}

        self.master_context = self.register_context('master')

    def is_existing_context(self, name: str) -> bool:
        return name in self.contexts

    def assert_not_locked(self, name: str) -> None:
        if self.get_context(name).locked:
            raise errors.ContextIsLocked

    def assert_exists(self, name: str) -> None:
        if not self.is_existing_context(name):
            raise errors.UnknownContext

    def assert_does_not_exist(self, name: str) -> None:
        if self.is_existing_context(name):
            raise errors.ContextAlreadyExists

    def register_context(self, name: str, replace: bool = False) -> Context:
        """ Registers a new context with the given name and returns it.

        """
        with self.thread_lock:
            if replace:
                if self.is_existing_context(name):
                    self.assert_not_locked(name)
            else:
                self.assert_does_not_exist(name)

            self.contexts[name] = Context(
                name,
                parent=self.master_context,
                locked=False
            )

            return self.contexts[name]

    def get_context(self, name: str) -> Context:
        self.assert_exists(name)
        return self.contexts[name]
