"""Lifecycle hooks around create/save/replace/delete.

A record opts into a hook by defining the matching method; the dispatcher
checks the protocol once per operation. Hooks receive the transaction
(the :class:`~sorm.protocols.Querier` the operation runs on) and signal
failure by raising::

    @dataclass
    class Invoice:
        id: int = 0
        total: int = 0

        def before_save(self, tx):
            if self.total < 0:
                raise ValueError("negative total")

A failing ``before_*`` hook aborts the operation before any statement runs.
A failing ``after_*`` hook is reported after the statement executed; only a
rollback of the caller's transaction undoes it.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from sorm.errors import HookError
from sorm.logging import get_logger

logger = get_logger(__name__)


@runtime_checkable
class BeforeCreate(Protocol):
    def before_create(self, tx: Any) -> None: ...


@runtime_checkable
class AfterCreate(Protocol):
    def after_create(self, tx: Any) -> None: ...


@runtime_checkable
class BeforeSave(Protocol):
    def before_save(self, tx: Any) -> None: ...


@runtime_checkable
class AfterSave(Protocol):
    def after_save(self, tx: Any) -> None: ...


@runtime_checkable
class BeforeReplace(Protocol):
    def before_replace(self, tx: Any) -> None: ...


@runtime_checkable
class AfterReplace(Protocol):
    def after_replace(self, tx: Any) -> None: ...


@runtime_checkable
class BeforeDelete(Protocol):
    def before_delete(self, tx: Any) -> None: ...


@runtime_checkable
class AfterDelete(Protocol):
    def after_delete(self, tx: Any) -> None: ...


HOOKS: dict[str, type] = {
    "before_create": BeforeCreate,
    "after_create": AfterCreate,
    "before_save": BeforeSave,
    "after_save": AfterSave,
    "before_replace": BeforeReplace,
    "after_replace": AfterReplace,
    "before_delete": BeforeDelete,
    "after_delete": AfterDelete,
}


def run_hook(record: Any, hook: str, tx: Any, *, operation: str) -> bool:
    """Invoke ``record.<hook>(tx)`` if the record implements it.

    Returns whether the hook ran.

    Raises:
        HookError: The hook raised; the original exception is the cause.
    """
    if not isinstance(record, HOOKS[hook]):
        return False

    try:
        getattr(record, hook)(tx)
    except Exception as exc:
        logger.debug("hook_failed", hook=hook, operation=operation, error=str(exc))
        raise HookError(
            f"{operation}: {hook} callback returned an error: {exc}",
            hook=hook,
            operation=operation,
            record_type=type(record).__name__,
            cause=exc,
        ) from exc
    return True


__all__ = [
    "BeforeCreate",
    "AfterCreate",
    "BeforeSave",
    "AfterSave",
    "BeforeReplace",
    "AfterReplace",
    "BeforeDelete",
    "AfterDelete",
    "HOOKS",
    "run_hook",
]
