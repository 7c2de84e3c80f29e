import logging
import queue
from dataclasses import dataclass
from threading import Thread
from typing import Any, Optional


@dataclass
class TaskResult:
    """Outcome of a background call: its return value or the exception it raised."""

    value: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self):
        return self.error is None


class BackgroundTask:
    """
    Runs one blocking call on a daemon thread.
    The result travels back through a one-shot queue that the GUI thread polls each frame.
    """

    def __init__(self, fn, *args, name=None, **kwargs):
        self.name = name or getattr(fn, "__name__", "task")
        self._fn = fn
        self._args = args
        self._kwargs = kwargs
        self._result = queue.Queue(maxsize=1)
        self._delivered = False
        self._thread = Thread(target=self._run, name=self.name, daemon=True)

    def start(self):
        logging.debug(f"Starting background task {self.name}")
        self._thread.start()
        return self

    def _run(self):
        try:
            result = TaskResult(value=self._fn(*self._args, **self._kwargs))
        except Exception as e:
            logging.exception(f"Background task {self.name} failed: {e}")
            result = TaskResult(error=e)
        self._result.put(result)

    def poll(self):
        """Return the TaskResult once, when ready. None before and after delivery."""
        if self._delivered:
            return None
        try:
            result = self._result.get_nowait()
        except queue.Empty:
            return None
        self._delivered = True
        return result

    @property
    def done(self):
        return self._delivered or not self._result.empty()

    def join(self, timeout=None):
        self._thread.join(timeout)


class TaskSlot:
    """Holds at most one in-flight task of a given kind."""

    def __init__(self, name):
        self.name = name
        self.task = None
        self.on_result = None

    @property
    def busy(self):
        return self.task is not None

    def start(self, task, on_result):
        """Start `task` unless one is already running. Returns False when busy."""
        if self.busy:
            logging.warning(f"{self.name} task already running, ignoring request")
            return False
        self.task = task
        self.on_result = on_result
        task.start()
        return True

    def poll(self):
        """Deliver a finished task's result to its callback. Returns True if delivered."""
        if self.task is None:
            return False
        result = self.task.poll()
        if result is None:
            return False
        callback = self.on_result
        self.task = None
        self.on_result = None
        callback(result)
        return True
