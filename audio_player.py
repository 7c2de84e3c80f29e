import os
import time
import logging
from ffpyplayer.player import MediaPlayer
from PyQt6.QtCore import pyqtSignal, QObject
from threading import Thread, Event as ThreadEvent

POLL_INTERVAL = 0.01


class AudioPlayer(QObject):
    """
    Plays a saved audio file on a background thread.
    Pause, resume and abort requests are events the playback loop picks up.
    """

    playback_started = pyqtSignal()
    playback_paused = pyqtSignal()
    playback_resumed = pyqtSignal()
    playback_finished = pyqtSignal()
    playback_error = pyqtSignal(str)
    state_changed = pyqtSignal(bool)  # True = playing, False = paused/stopped

    def __init__(self):
        super().__init__()
        self.pause_event = ThreadEvent()
        self.abort_event = ThreadEvent()
        self.file_path = None
        self.playing = False
        self.playback_thread = None

    def play(self, file_path):
        """Play `file_path` until it ends or is aborted. Blocks the calling thread."""
        media = None
        try:
            if not file_path or not os.path.exists(file_path):
                raise ValueError(f"No audio file at {file_path}")

            self.file_path = file_path
            self.pause_event.clear()
            self.abort_event.clear()
            self.playing = True

            media = MediaPlayer(file_path, ff_opts={"vn": True})
            self.playback_started.emit()
            self.state_changed.emit(True)
            logging.info(f"Playing {file_path}")

            paused = False
            while not self.abort_event.is_set():
                want_pause = self.pause_event.is_set()
                if want_pause != paused:
                    media.set_pause(want_pause)
                    paused = want_pause
                _, val = media.get_frame()
                if val == "eof":
                    break
                time.sleep(POLL_INTERVAL)

        except Exception as e:
            logging.exception(f"Playback failed: {e}")
            self.playback_error.emit(str(e))
        finally:
            if media is not None:
                media.close_player()
            self.playing = False
            self.pause_event.clear()
            self.playback_finished.emit()
            self.state_changed.emit(False)

    def pause(self):
        if self.playing and not self.pause_event.is_set():
            self.pause_event.set()
            self.playback_paused.emit()
            self.state_changed.emit(False)

    def resume(self):
        if self.playing and self.pause_event.is_set():
            self.pause_event.clear()
            self.playback_resumed.emit()
            self.state_changed.emit(True)

    def toggle_playback(self):
        if self.is_playing():
            self.pause()
        else:
            self.resume()

    def abort(self):
        """Stop playback; the loop emits playback_finished on its way out."""
        self.abort_event.set()

    def cleanup(self):
        """Stop playback and wait briefly for the playback thread."""
        self.abort()
        if self.playback_thread and self.playback_thread.is_alive():
            self.playback_thread.join(timeout=1.0)
        self.file_path = None

    def is_playing(self):
        return self.playing and not self.pause_event.is_set()

    def has_audio(self):
        return self.file_path is not None

    def start_playback_thread(self, file_path):
        """Start playing `file_path` in a separate thread, replacing any current playback."""
        if self.playback_thread and self.playback_thread.is_alive():
            self.abort()
            self.playback_thread.join(timeout=1.0)

        self.playback_thread = Thread(target=self.play, args=(file_path,))
        self.playback_thread.daemon = True
        self.playback_thread.start()
