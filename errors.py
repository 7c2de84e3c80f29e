import logging
import queue
from PyQt6.QtWidgets import QMessageBox


class ErrorChannel:
    """Unbounded, thread-safe queue of error messages.

    Worker threads call `send`, the GUI thread drains it with `try_recv`.
    """

    def __init__(self):
        self._queue = queue.Queue()

    def send(self, message):
        self._queue.put(str(message))

    def try_recv(self):
        """Return the oldest pending message, or None when the channel is empty."""
        try:
            return self._queue.get_nowait()
        except queue.Empty:
            return None

    def pending(self):
        return self._queue.qsize()


class ErrorManager:
    """
    Surfaces the errors of one channel as a modal dialog.
    The window calls `update` every frame; at most one dialog is open per manager.
    """

    def __init__(self, name, channel):
        self.name = name
        self.channel = channel
        self.last_error = None
        self.modal_open = False
        self._dialog = None

    def update(self, parent=None):
        """Pick up one pending error and show it, unless a dialog is already open."""
        if self.modal_open:
            return None

        error = self.channel.try_recv()
        if error is None:
            return None

        logging.error(f"[{self.name}]: Error: {error}")
        self.last_error = error
        self.modal_open = True
        self.present(error, parent)
        return error

    def present(self, error, parent=None):
        self._dialog = QMessageBox(parent)
        self._dialog.setWindowTitle(self.name)
        self._dialog.setIcon(QMessageBox.Icon.Warning)
        self._dialog.setText(f"Error: {error}")
        self._dialog.finished.connect(self.close)
        self._dialog.open()

    def close(self, *_):
        """Called when the dialog is dismissed."""
        self.modal_open = False
        self.last_error = None
        self._dialog = None
