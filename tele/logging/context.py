"""Run-scoped logging context.

The orchestrator binds the capture id and the running stage to the task
executing a develop, and the formatters read them back. Context variables
keep a superseded run's task from tagging the active run's lines.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

_capture_id: ContextVar[str | None] = ContextVar("tele_capture_id", default=None)
_stage: ContextVar[str | None] = ContextVar("tele_stage", default=None)


def bind_capture(capture_id: str) -> None:
    """Tag subsequent lines of this task with ``capture_id`` and no stage."""
    _capture_id.set(capture_id)
    _stage.set(None)


def bind_stage(stage: str | None) -> None:
    """Tag subsequent lines of this task with the running stage."""
    _stage.set(stage)


def current_capture_id() -> str | None:
    """Return the capture id bound to this task, if any."""
    return _capture_id.get()


def current_stage() -> str | None:
    """Return the stage bound to this task, if any."""
    return _stage.get()


def run_fields() -> dict[str, str]:
    """Return the bound values as log fields, omitting unbound ones."""
    fields: dict[str, str] = {}
    capture_id = _capture_id.get()
    if capture_id:
        fields["capture_id"] = capture_id
    stage = _stage.get()
    if stage:
        fields["stage"] = stage
    return fields


@contextmanager
def capture_scope(capture_id: str) -> Iterator[None]:
    """Bind ``capture_id`` for the duration of the block, then restore."""
    capture_token = _capture_id.set(capture_id)
    stage_token = _stage.set(None)
    try:
        yield
    finally:
        _stage.reset(stage_token)
        _capture_id.reset(capture_token)


def clear_context() -> None:
    """Unbind the capture id and stage."""
    _capture_id.set(None)
    _stage.set(None)
