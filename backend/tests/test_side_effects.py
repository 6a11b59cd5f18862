from bingo_pos.services import side_effects
from bingo_pos.services.side_effects import default_dispatcher, dispatch, set_dispatcher


def test_runs_inline_outside_request(app):
    calls = []
    default_dispatcher(calls.append, "done")
    assert calls == ["done"]


def test_failures_are_swallowed(app):
    def explode():
        raise RuntimeError("side effect blew up")

    default_dispatcher(explode)
    dispatch(explode)


def test_runs_after_response_inside_request(app):
    calls = []

    with app.test_request_context("/api/sales", method="POST"):
        default_dispatcher(calls.append, "after")
        assert calls == []
        response = app.process_response(app.response_class("ok"))

    assert calls == []
    response.close()
    assert calls == ["after"]


def test_set_dispatcher_swaps_and_restores(app):
    captured = []

    def capture(task, *args, **kwargs):
        captured.append((task, args))

    previous = set_dispatcher(capture)
    try:
        dispatch(print, "hello")
        assert captured == [(print, ("hello",))]
    finally:
        set_dispatcher(previous)

    restored = set_dispatcher(None)
    assert restored is previous
    assert side_effects._dispatcher is default_dispatcher
    set_dispatcher(previous)


def test_broken_dispatcher_is_contained(app):
    def broken(task, *args, **kwargs):
        raise RuntimeError("queue full")

    previous = set_dispatcher(broken)
    try:
        dispatch(print, "never")
    finally:
        set_dispatcher(previous)
