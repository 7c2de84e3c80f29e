import os
from dataclasses import dataclass, field
from PyQt6.QtCore import QSettings

from elabs import Voice, DEFAULT_MODEL_ID

APP_KEY = "please_speak"
ORGANIZATION = "PleaseSpeak"
THEMES = ["dark", "light"]


def default_save_path():
    return os.path.join(os.path.expanduser("~"), f"{APP_KEY}.mp3")


@dataclass
class AppConfig:
    """Everything the window restores on the next start."""

    api_key: str = ""
    text: str = "Hello World!"
    voice: Voice = field(default_factory=Voice.default)
    save_path: str = field(default_factory=default_save_path)
    model_id: str = DEFAULT_MODEL_ID
    theme: str = "dark"


def open_settings():
    return QSettings(ORGANIZATION, APP_KEY)


def load_config(settings=None):
    """Read the stored config, falling back to defaults for anything missing."""
    settings = settings if settings is not None else open_settings()
    defaults = AppConfig()

    voice = defaults.voice
    voice_id = settings.value("voice/id", "", type=str)
    voice_name = settings.value("voice/name", "", type=str)
    if voice_id:
        voice = Voice(voice_id=voice_id, voice_name=voice_name or voice_id)

    theme = settings.value("theme", defaults.theme, type=str)
    if theme not in THEMES:
        theme = defaults.theme

    return AppConfig(
        api_key=settings.value("api_key", defaults.api_key, type=str),
        text=settings.value("text", defaults.text, type=str),
        voice=voice,
        save_path=settings.value("save_path", defaults.save_path, type=str)
        or defaults.save_path,
        model_id=settings.value("model_id", defaults.model_id, type=str)
        or defaults.model_id,
        theme=theme,
    )


def save_config(config, settings=None):
    settings = settings if settings is not None else open_settings()
    settings.setValue("api_key", config.api_key)
    settings.setValue("text", config.text)
    settings.setValue("voice/id", config.voice.voice_id)
    settings.setValue("voice/name", config.voice.voice_name)
    settings.setValue("save_path", config.save_path)
    settings.setValue("model_id", config.model_id)
    settings.setValue("theme", config.theme)
    settings.sync()
