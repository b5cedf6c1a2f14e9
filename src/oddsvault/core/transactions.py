"""All-or-nothing operations with re-entry protection.

Each stateful component lists the attributes that hold its mutable state in
``_journal_fields``. ``atomic()`` checkpoints those attributes on entry and
restores every participant if the body raises, so a rejected operation
leaves no partial effect. ``@transactional`` wraps a public method in an
``atomic()`` block covering its own instance and the collaborators named in
``_atomic_with``, rejects re-entry while a call on the same instance is
still in flight, and tags the operation's log records with a transaction id.
"""

from __future__ import annotations

import copy
import functools
import inspect
import logging
from collections.abc import Callable, Generator
from contextlib import contextmanager
from typing import Any, TypeVar

from .exceptions import ReentrancyError
from .logging import correlation_context, get_correlation_id, operation_logger

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class Transactional:
    """Mixin for components whose state can be checkpointed and restored."""

    _journal_fields: tuple[str, ...] = ()
    _atomic_with: tuple[str, ...] = ()
    _in_flight: str | None = None

    def _checkpoint(self) -> dict[str, Any]:
        return {name: copy.deepcopy(getattr(self, name)) for name in self._journal_fields}

    def _restore(self, saved: dict[str, Any]) -> None:
        for name, value in saved.items():
            setattr(self, name, value)


@contextmanager
def atomic(*participants: Any) -> Generator[None, None, None]:
    """Run a block that either fully applies or leaves every participant unchanged.

    Participants that are not ``Transactional`` (for example an external token
    ledger that provides its own atomicity) are ignored.
    """
    saved = [(p, p._checkpoint()) for p in participants if isinstance(p, Transactional)]
    try:
        yield
    except BaseException:
        for participant, state in reversed(saved):
            participant._restore(state)
        raise


def transactional(method: F) -> F:
    """Decorate a method of a ``Transactional`` as a guarded atomic operation."""

    signature = inspect.signature(method)

    @functools.wraps(method)
    def wrapper(self: Transactional, *args: Any, **kwargs: Any) -> Any:
        name = f"{type(self).__name__}.{method.__name__}"
        if self._in_flight is not None:
            raise ReentrancyError(
                f"{name} rejected: {type(self).__name__} is already executing {self._in_flight}",
                details={"operation": name, "in_flight": self._in_flight},
            )

        bound = signature.bind(self, *args, **kwargs)
        arguments = {k: v for k, v in bound.arguments.items() if k != "self"}

        self._in_flight = method.__name__
        try:
            with correlation_context(get_correlation_id()):
                operation_logger.log_call(name, arguments)
                try:
                    with atomic(self, *(getattr(self, n) for n in self._atomic_with)):
                        result = method(self, *args, **kwargs)
                except Exception as e:
                    operation_logger.log_result(name, success=False, error=type(e).__name__)
                    raise
                operation_logger.log_result(name, success=True)
                return result
        finally:
            self._in_flight = None

    return wrapper  # type: ignore[return-value]
