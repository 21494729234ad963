from __future__ import annotations

from collections.abc import Callable
from typing import Any

from PySide6.QtCore import QObject, QRunnable, QThreadPool, Signal

_ACTIVE_TASKS: set[AsyncTask] = set()


class TaskSignals(QObject):
    success = Signal(object)
    error = Signal(Exception)
    finished = Signal()


class AsyncTask(QRunnable):
    def __init__(self, fn: Callable[[], Any]) -> None:
        super().__init__()
        self.fn = fn
        self.signals = TaskSignals()
        # Python owns the runnable; Qt must not delete it under us.
        self.setAutoDelete(False)

    def run(self) -> None:
        try:
            result = self.fn()
        except Exception as exc:  # noqa: BLE001
            self.signals.error.emit(exc)
        else:
            self.signals.success.emit(result)
        finally:
            self.signals.finished.emit()


def run_async(
    parent: QObject | None,
    fn: Callable[[], Any],
    on_success: Callable[[Any], None] | None = None,
    on_error: Callable[[Exception], None] | None = None,
    on_finished: Callable[[], None] | None = None,
) -> AsyncTask:
    task = AsyncTask(fn)
    if on_success:
        task.signals.success.connect(on_success)
    if on_error:
        task.signals.error.connect(on_error)
    if on_finished:
        task.signals.finished.connect(on_finished)
    _ACTIVE_TASKS.add(task)
    task.signals.finished.connect(lambda: _ACTIVE_TASKS.discard(task))
    QThreadPool.globalInstance().start(task)
    return task


def run_inline(
    parent: QObject | None,
    fn: Callable[[], Any],
    on_success: Callable[[Any], None] | None = None,
    on_error: Callable[[Exception], None] | None = None,
    on_finished: Callable[[], None] | None = None,
) -> None:
    """Synchronous stand-in for run_async when no Qt event loop is running."""
    try:
        result = fn()
    except Exception as exc:  # noqa: BLE001
        if on_error:
            on_error(exc)
    else:
        if on_success:
            on_success(result)
    finally:
        if on_finished:
            on_finished()


def pending_task_count() -> int:
    return len(_ACTIVE_TASKS)
