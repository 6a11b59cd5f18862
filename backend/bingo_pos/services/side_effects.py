# Overview: Fire-and-forget dispatch for post-commit side effects.

"""
Side-effect dispatch.

Contract: a dispatched task can never affect the result of the operation that
dispatched it. Its exceptions are logged and swallowed.

Inside a request the task runs once the response has been sent to the client
(werkzeug's call_on_close), under a fresh app context. Outside a request
(CLI, tests calling services directly) it runs inline, still guarded.

Tests can replace the dispatcher via set_dispatcher() to drop or capture tasks.
"""

from __future__ import annotations

from typing import Callable

from flask import after_this_request, current_app, has_request_context


def _run_guarded(task: Callable, args: tuple, kwargs: dict) -> None:
    try:
        task(*args, **kwargs)
    except Exception:
        current_app.logger.warning(
            "Side effect %s failed", getattr(task, "__name__", repr(task)), exc_info=True
        )


def default_dispatcher(task: Callable, *args, **kwargs) -> None:
    if not has_request_context():
        _run_guarded(task, args, kwargs)
        return

    app = current_app._get_current_object()

    def _after_response():
        with app.app_context():
            _run_guarded(task, args, kwargs)

    @after_this_request
    def _schedule(response):
        response.call_on_close(_after_response)
        return response


_dispatcher: Callable = default_dispatcher


def set_dispatcher(dispatcher: Callable | None) -> Callable:
    """Swap the dispatcher; None restores the default. Returns the previous one."""
    global _dispatcher
    previous = _dispatcher
    _dispatcher = dispatcher or default_dispatcher
    return previous


def dispatch(task: Callable, *args, **kwargs) -> None:
    """Schedule task(*args, **kwargs) as a non-blocking side effect."""
    try:
        _dispatcher(task, *args, **kwargs)
    except Exception:
        current_app.logger.warning("Failed to dispatch side effect", exc_info=True)
