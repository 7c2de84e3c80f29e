import logging
from PyQt6.QtWidgets import (
    QWidget,
    QVBoxLayout,
    QHBoxLayout,
    QTextEdit,
    QLabel,
    QLineEdit,
    QPushButton,
    QProgressBar,
    QFileDialog,
    QComboBox,
    QMessageBox,
    QMenuBar,
    QMenu,
    QInputDialog,
)
from PyQt6.QtCore import QTimer, pyqtSlot
from PyQt6.QtGui import QAction, QFont

from audio_player import AudioPlayer
from elabs import Elabs, MODELS, MAX_CHARS_PER_REQUEST
from errors import ErrorChannel, ErrorManager
from settings import AppConfig, load_config, save_config
from utils import estimate_credits, split_text, read_api_key, write_api_key, audio_duration
from workers import BackgroundTask, TaskSlot

FRAME_INTERVAL_MS = 50

LIGHT_STYLE = "QWidget { background-color: #FFFFFF; color: #000000; }"
LIGHT_EDIT_STYLE = "QTextEdit { background-color: #F0F0F0; color: #000000; }"
DARK_STYLE = "QWidget { background-color: #2E2E2E; color: #FFFFFF; }"
DARK_EDIT_STYLE = "QTextEdit { background-color: #3E3E3E; color: #FFFFFF; }"


class TTSWindow(QWidget):
    """Main window: text, voice picker, Speak button and playback of the saved file."""

    def __init__(self, config=None, settings=None):
        super().__init__()
        self.settings = settings
        self.config = config if config is not None else load_config(settings)
        # Only keys entered in Settings are stored; others are looked up on each start
        self.api_key = self.config.api_key or read_api_key() or ""
        self.reconnect_pending = False

        self.api_errors = ErrorChannel()
        self.client_errors = ErrorChannel()
        self.api_error_manager = ErrorManager("API error", self.api_errors)
        self.client_error_manager = ErrorManager("Client error", self.client_errors)
        self.elabs = Elabs(self.api_errors, self.client_errors)

        self.voices = []
        self.voice_task = TaskSlot("voices")
        self.speech_task = TaskSlot("speech")
        self.speech_progress = 0

        self.player = AudioPlayer()
        self.player.playback_finished.connect(self.reset_playback_ui)
        self.player.playback_error.connect(self.show_message)
        self.player.state_changed.connect(self.on_player_state_changed)

        self.initUI()
        self.apply_config()

        self.frame_timer = QTimer(self)
        self.frame_timer.timeout.connect(self.update_frame)

    def initUI(self):
        self.setWindowTitle("Please Speak")
        self.setGeometry(100, 100, 630, 390)
        self.setMinimumSize(300, 220)

        self.layout = QVBoxLayout()
        self.setLayout(self.layout)

        heading = QLabel("Please Speak - Powered by ElevenLabs", self)
        font = QFont()
        font.setPointSize(14)
        font.setBold(True)
        heading.setFont(font)

        self.text_edit = QTextEdit(self)
        self.text_edit.setMinimumHeight(150)
        self.char_count_label = QLabel("Character Count: 0", self)
        self.chunk_count_label = QLabel("Number of Chunks: 0", self)
        self.credits_label = QLabel("Estimated Credits: 0", self)

        self.voice_combo = QComboBox(self)
        self.voice_combo.setMinimumWidth(200)
        self.model_combo = QComboBox(self)
        self.model_combo.addItems(MODELS)

        self.path_entry = QLineEdit(self)
        self.select_path_button = QPushButton("Select Path", self)

        self.progress_bar = QProgressBar(self)
        self.status_label = QLabel("", self)

        self.speak_button = QPushButton("Speak", self)
        self.play_pause_button = QPushButton("Play", self)
        self.abort_button = QPushButton("Abort", self)
        self.play_pause_button.setEnabled(False)
        self.abort_button.hide()

        self.layout.addWidget(heading)
        self.layout.addWidget(self.text_edit)

        counts_layout = QHBoxLayout()
        counts_layout.addWidget(self.char_count_label)
        counts_layout.addWidget(self.chunk_count_label)
        counts_layout.addWidget(self.credits_label)
        self.layout.addLayout(counts_layout)

        voice_layout = QHBoxLayout()
        voice_layout.addWidget(QLabel("Select a voice:"))
        voice_layout.addWidget(self.voice_combo)
        voice_layout.addWidget(QLabel("Model:"))
        voice_layout.addWidget(self.model_combo)
        self.layout.addLayout(voice_layout)

        path_layout = QHBoxLayout()
        path_layout.addWidget(QLabel("Save Path:"))
        path_layout.addWidget(self.path_entry)
        path_layout.addWidget(self.select_path_button)
        self.layout.addLayout(path_layout)

        self.layout.addWidget(self.progress_bar)
        self.layout.addWidget(self.status_label)

        button_layout = QHBoxLayout()
        button_layout.addWidget(self.speak_button)
        button_layout.addWidget(self.play_pause_button)
        button_layout.addWidget(self.abort_button)
        self.layout.addLayout(button_layout)

        menubar = QMenuBar(self)
        self.layout.setMenuBar(menubar)

        file_menu = QMenu("File", self)
        menubar.addMenu(file_menu)
        settings_action = QAction("Settings", self)
        use_system_action = QAction("Use System API Key", self)
        quit_action = QAction("Quit", self)
        file_menu.addAction(settings_action)
        file_menu.addAction(use_system_action)
        file_menu.addSeparator()
        file_menu.addAction(quit_action)

        theme_menu = QMenu("Themes", self)
        menubar.addMenu(theme_menu)
        light_action = QAction("Light", self)
        dark_action = QAction("Dark", self)
        theme_menu.addAction(light_action)
        theme_menu.addAction(dark_action)

        self.text_edit.textChanged.connect(self.update_counts)
        self.select_path_button.clicked.connect(self.select_path)
        self.speak_button.clicked.connect(self.speak)
        self.play_pause_button.clicked.connect(self.on_play_pause_clicked)
        self.abort_button.clicked.connect(self.on_abort_clicked)
        self.voice_combo.currentIndexChanged.connect(self.on_voice_selected)
        settings_action.triggered.connect(self.open_settings)
        use_system_action.triggered.connect(self.use_system_api_key)
        quit_action.triggered.connect(self.close)
        light_action.triggered.connect(self.set_light_theme)
        dark_action.triggered.connect(self.set_dark_theme)

    def apply_config(self):
        self.text_edit.setPlainText(self.config.text)
        self.path_entry.setText(self.config.save_path)
        index = self.model_combo.findText(self.config.model_id)
        if index >= 0:
            self.model_combo.setCurrentIndex(index)
        self.populate_voices([self.config.voice])
        if self.config.theme == "light":
            self.set_light_theme()
        else:
            self.set_dark_theme()

    def collect_config(self):
        return AppConfig(
            api_key=self.config.api_key,
            text=self.text_edit.toPlainText(),
            voice=self.config.voice,
            save_path=self.path_entry.text(),
            model_id=self.model_combo.currentText(),
            theme=self.config.theme,
        )

    def start(self):
        """Begin polling and connect to the API in the background."""
        self.frame_timer.start(FRAME_INTERVAL_MS)
        self.connect_api()

    def update_frame(self):
        """One frame: deliver finished tasks, then surface pending errors."""
        self.voice_task.poll()
        self.speech_task.poll()
        if self.speech_task.busy:
            self.progress_bar.setValue(self.speech_progress)
        self.api_error_manager.update(self)
        self.client_error_manager.update(self)

    def connect_api(self):
        """Initialise the client with the configured key and load the voices."""
        api_key = self.api_key
        if not api_key:
            self.client_errors.send(
                "No API key found. Set ELEVENLABS_API_KEY or use File > Settings."
            )
            return
        if self.voice_task.busy:
            # picked up by on_voices_loaded once the running attempt ends
            self.reconnect_pending = True
            self.status_label.setText(
                "Will reconnect with the new API key once the current attempt finishes..."
            )
            logging.info("Connection in progress, queued reconnect with the new API key")
            return
        self.status_label.setText("Connecting to ElevenLabs...")
        self.voice_task.start(
            BackgroundTask(self.load_api_resources, api_key, name="load_voices"),
            self.on_voices_loaded,
        )

    def load_api_resources(self, api_key):
        """Runs on a worker thread."""
        if not self.elabs.init(api_key):
            return None
        return self.elabs.voices

    def on_voices_loaded(self, result):
        if self.reconnect_pending:
            self.reconnect_pending = False
            logging.debug("Discarding result of a connection made with an old API key")
            self.connect_api()
            return
        if not result.ok:
            self.client_errors.send(f"Failed to load voices: {result.error}")
            self.status_label.setText("Not connected")
            return
        if result.value is None:
            self.status_label.setText("Not connected")
            return
        self.status_label.setText(f"Connected, {len(result.value)} voices available")
        self.populate_voices(result.value)

    def populate_voices(self, voices):
        self.voices = list(voices)
        if self.config.voice not in self.voices:
            self.voices.insert(0, self.config.voice)
        self.voice_combo.blockSignals(True)
        self.voice_combo.clear()
        for voice in self.voices:
            self.voice_combo.addItem(voice.voice_name, voice.voice_id)
        self.voice_combo.setCurrentIndex(self.voices.index(self.config.voice))
        self.voice_combo.blockSignals(False)

    @pyqtSlot(int)
    def on_voice_selected(self, index):
        if 0 <= index < len(self.voices):
            self.config.voice = self.voices[index]
            logging.debug(f"Selected voice {self.config.voice.voice_name}")

    def speak(self):
        text = self.text_edit.toPlainText()
        path = self.path_entry.text().strip()
        if not text.strip():
            self.show_message("Please enter some text first")
            return
        if not path:
            self.show_message("Please select where to save the audio")
            return
        if not self.elabs.connected:
            self.client_errors.send(
                "ElevenLabs client not initialized, please set your API key in the settings"
            )
            return

        self.speech_progress = 1
        self.progress_bar.setValue(1)
        self.status_label.setText("Generating speech...")
        self.speak_button.setEnabled(False)
        started = self.speech_task.start(
            BackgroundTask(
                self.generate_speech,
                text,
                self.config.voice,
                path,
                self.model_combo.currentText(),
                progress=self.set_speech_progress,
                name="save_speech",
            ),
            self.on_speech_saved,
        )
        if not started:
            self.speak_button.setEnabled(True)

    def generate_speech(self, text, voice, path, model_id, progress=None):
        """
        Runs on a worker thread. Saves the speech and measures it.

        Returns:
            tuple: (path, duration in seconds or None), or None when saving failed.
        """
        saved = self.elabs.save_speech(text, voice, path, model_id, progress=progress)
        if saved is None:
            return None
        try:
            duration = audio_duration(saved)
        except Exception as e:
            logging.warning(f"Could not read duration of {saved}: {e}")
            duration = None
        return saved, duration

    def set_speech_progress(self, value):
        """Runs on a worker thread; the next frame copies it to the progress bar."""
        self.speech_progress = value

    def on_speech_saved(self, result):
        self.speak_button.setEnabled(True)
        if not result.ok:
            self.client_errors.send(f"Failed to generate speech: {result.error}")
        if not result.ok or result.value is None:
            self.progress_bar.setValue(0)
            self.status_label.setText("Speech generation failed")
            return

        path, duration = result.value
        self.progress_bar.setValue(100)
        if duration is None:
            self.status_label.setText(f"Saved audio to {path}")
        else:
            self.status_label.setText(f"Saved {duration:.1f}s of audio to {path}")
        self.play_file(path)

    def play_file(self, path):
        self.play_pause_button.setEnabled(True)
        self.abort_button.show()
        self.player.start_playback_thread(path)

    @pyqtSlot()
    def on_play_pause_clicked(self):
        if self.player.playing:
            self.player.toggle_playback()
        elif self.player.has_audio():
            self.play_file(self.player.file_path)

    @pyqtSlot()
    def on_abort_clicked(self):
        self.player.abort()

    @pyqtSlot(bool)
    def on_player_state_changed(self, is_playing):
        self.play_pause_button.setText("Pause" if is_playing else "Play")

    @pyqtSlot()
    def reset_playback_ui(self):
        self.abort_button.hide()
        self.play_pause_button.setText("Play")

    @pyqtSlot(str)
    def show_message(self, message):
        msg_box = QMessageBox(self)
        msg_box.setText(message)
        msg_box.exec()

    def update_counts(self):
        text = self.text_edit.toPlainText()
        chunks = split_text(text, MAX_CHARS_PER_REQUEST)
        self.char_count_label.setText(f"Character Count: {len(text)}")
        self.chunk_count_label.setText(f"Number of Chunks: {len(chunks)}")
        self.credits_label.setText(f"Estimated Credits: {estimate_credits(text)}")

    def select_path(self):
        file_path, _ = QFileDialog.getSaveFileName(
            self, "Save As", self.path_entry.text(), "MP3 Files (*.mp3)"
        )
        if file_path:
            self.path_entry.setText(file_path)

    @pyqtSlot()
    def open_settings(self):
        api_key, ok = QInputDialog.getText(
            self,
            "Set API Key",
            "Enter your API Key:",
            QLineEdit.EchoMode.Password,
            self.api_key,
        )
        if not ok:
            return
        self.config.api_key = api_key.strip()
        self.api_key = self.config.api_key or read_api_key() or ""
        save_config(self.collect_config(), self.settings)
        if self.config.api_key and write_api_key(self.config.api_key):
            logging.info("API key written to local key file")
        self.connect_api()

    @pyqtSlot()
    def use_system_api_key(self):
        api_key = read_api_key()
        if not api_key:
            self.show_message("No API key found in ELEVENLABS_API_KEY, .env or api_key.txt")
            return
        # Forget the stored key so the system one is used on later starts too
        self.config.api_key = ""
        self.api_key = api_key
        self.connect_api()

    @pyqtSlot()
    def set_light_theme(self):
        self.config.theme = "light"
        self.setStyleSheet(LIGHT_STYLE)
        self.text_edit.setStyleSheet(LIGHT_EDIT_STYLE)

    @pyqtSlot()
    def set_dark_theme(self):
        self.config.theme = "dark"
        self.setStyleSheet(DARK_STYLE)
        self.text_edit.setStyleSheet(DARK_EDIT_STYLE)

    def closeEvent(self, event):
        """Persist the config and stop playback before closing."""
        self.frame_timer.stop()
        save_config(self.collect_config(), self.settings)
        self.player.cleanup()
        event.accept()
