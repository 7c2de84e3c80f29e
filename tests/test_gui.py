"""Window behaviour that does not need a real display or network."""

import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest
from PyQt6.QtCore import QSettings
from PyQt6.QtGui import QCloseEvent
from PyQt6.QtWidgets import QApplication

from elabs import Voice
from settings import AppConfig, load_config
from workers import TaskResult


@pytest.fixture(scope="module")
def app():
    return QApplication.instance() or QApplication([])


@pytest.fixture
def window(app, tmp_path):
    from gui import TTSWindow

    settings = QSettings(str(tmp_path / "please_speak.ini"), QSettings.Format.IniFormat)
    config = AppConfig(api_key="secret", save_path=str(tmp_path / "out.mp3"))
    window = TTSWindow(config=config, settings=settings)
    yield window
    window.player.cleanup()
    window.deleteLater()


def test_initial_state_comes_from_config(window, tmp_path):
    assert window.text_edit.toPlainText() == "Hello World!"
    assert window.path_entry.text() == str(tmp_path / "out.mp3")
    assert window.voice_combo.currentText() == "Clyde"
    assert window.char_count_label.text() == "Character Count: 12"


def test_loaded_voices_keep_selection(window):
    voices = [Voice("id-adam", "Adam"), Voice("id-rachel", "Rachel")]

    window.on_voices_loaded(TaskResult(value=voices))

    assert [window.voice_combo.itemText(i) for i in range(window.voice_combo.count())] == [
        "Clyde",
        "Adam",
        "Rachel",
    ]
    assert window.config.voice == Voice.default()

    window.voice_combo.setCurrentIndex(2)
    assert window.config.voice == Voice("id-rachel", "Rachel")


def test_failed_voice_task_goes_to_client_errors(window):
    window.on_voices_loaded(TaskResult(error=RuntimeError("boom")))

    assert window.client_errors.try_recv() == "Failed to load voices: boom"
    assert window.status_label.text() == "Not connected"


def test_speak_without_connection_reports_error(window):
    window.speak()

    assert not window.speech_task.busy
    assert "not initialized" in window.client_errors.try_recv()


def test_close_persists_config(window, tmp_path):
    window.text_edit.setPlainText("Bye")
    window.set_light_theme()

    window.closeEvent(QCloseEvent())

    stored = load_config(window.settings)
    assert stored.text == "Bye"
    assert stored.theme == "light"
    assert stored.api_key == "secret"


def finish(slot):
    slot.task.join(timeout=5)
    assert slot.poll() is True


def test_speak_saves_then_reports_and_plays(window, tmp_path, monkeypatch):
    import gui

    path = str(tmp_path / "out.mp3")
    saved = []
    played = []
    window.elabs._connected = True
    monkeypatch.setattr(
        window.elabs,
        "save_speech",
        lambda text, voice, path, model_id, progress=None: saved.append((text, voice)) or path,
    )
    monkeypatch.setattr(gui, "audio_duration", lambda file_path: 2.5)
    monkeypatch.setattr(window.player, "start_playback_thread", played.append)

    window.speak()
    assert not window.speak_button.isEnabled()
    finish(window.speech_task)

    assert saved == [("Hello World!", Voice.default())]
    assert window.status_label.text() == f"Saved 2.5s of audio to {path}"
    assert window.progress_bar.value() == 100
    assert window.speak_button.isEnabled()
    assert played == [path]


def test_duration_is_measured_on_the_worker_thread(window, tmp_path, monkeypatch):
    import threading
    import gui

    threads = []
    window.elabs._connected = True
    monkeypatch.setattr(window.elabs, "save_speech", lambda *args, **kwargs: args[2])
    monkeypatch.setattr(gui, "audio_duration", lambda file_path: threads.append(threading.current_thread()) or 1.0)
    monkeypatch.setattr(window.player, "start_playback_thread", lambda path: None)

    window.speak()
    finish(window.speech_task)

    assert threads and threads[0] is not threading.main_thread()


def test_settings_reconnects_and_reloads_voices(window, monkeypatch):
    import gui

    probed = []

    def fake_init(api_key):
        probed.append(api_key)
        window.elabs.voices = [Voice("id-adam", "Adam")]
        return True

    monkeypatch.setattr(window.elabs, "init", fake_init)
    monkeypatch.setattr(gui.QInputDialog, "getText", lambda *args: ("new-key", True))
    monkeypatch.setattr(gui, "write_api_key", lambda api_key: False)

    window.open_settings()
    finish(window.voice_task)

    assert probed == ["new-key"]
    assert window.api_key == "new-key"
    assert window.voice_combo.findText("Adam") >= 0
    assert load_config(window.settings).api_key == "new-key"


def test_key_confirmed_while_connecting_is_used_afterwards(window, monkeypatch):
    import threading
    import gui

    release = threading.Event()
    probed = []

    def fake_init(api_key):
        probed.append(api_key)
        if api_key == "secret":
            release.wait(5)
            return False
        window.elabs.voices = [Voice("id-adam", "Adam")]
        return True

    monkeypatch.setattr(window.elabs, "init", fake_init)
    monkeypatch.setattr(gui.QInputDialog, "getText", lambda *args: ("new-key", True))
    monkeypatch.setattr(gui, "write_api_key", lambda api_key: False)

    window.connect_api()
    window.open_settings()
    assert "new API key" in window.status_label.text()

    release.set()
    finish(window.voice_task)
    finish(window.voice_task)

    assert probed == ["secret", "new-key"]
    assert window.status_label.text() == "Connected, 1 voices available"


def test_environment_key_is_not_persisted(app, tmp_path, monkeypatch):
    import gui

    settings = QSettings(str(tmp_path / "please_speak.ini"), QSettings.Format.IniFormat)
    monkeypatch.setattr(gui, "read_api_key", lambda: "env-old")
    first = gui.TTSWindow(config=load_config(settings), settings=settings)
    assert first.api_key == "env-old"
    first.closeEvent(QCloseEvent())

    assert load_config(settings).api_key == ""

    monkeypatch.setattr(gui, "read_api_key", lambda: "env-rotated")
    second = gui.TTSWindow(config=load_config(settings), settings=settings)
    assert second.api_key == "env-rotated"
    second.closeEvent(QCloseEvent())


def test_frame_surfaces_both_error_channels(window, monkeypatch):
    shown = []
    for manager in (window.api_error_manager, window.client_error_manager):
        monkeypatch.setattr(
            manager, "present", lambda error, parent=None, name=manager.name: shown.append((name, error))
        )
    window.api_errors.send("quota exceeded")
    window.client_errors.send("no key")

    window.update_frame()

    assert shown == [("API error", "quota exceeded"), ("Client error", "no key")]


def test_error_dialog_closes_and_frees_manager(window):
    window.api_errors.send("quota exceeded")

    window.api_error_manager.update(window)
    dialog = window.api_error_manager._dialog

    assert dialog.windowTitle() == "API error"
    assert dialog.text() == "Error: quota exceeded"
    assert window.api_error_manager.modal_open is True

    dialog.done(0)

    assert window.api_error_manager.modal_open is False
    assert window.api_error_manager.last_error is None
