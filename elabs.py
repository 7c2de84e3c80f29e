import os
import time
import logging
from dataclasses import dataclass
import requests

from utils import split_text, part_filename, concatenate_audio_files, cleanup_files

API_BASE_URL = "https://api.elevenlabs.io/v1"
DEFAULT_MODEL_ID = "eleven_multilingual_v2"
MODELS = [
    "eleven_multilingual_v2",
    "eleven_turbo_v2_5",
    "eleven_flash_v2_5",
    "eleven_monolingual_v1",
]
MAX_CHARS_PER_REQUEST = 5000
MAX_RETRIES = 3
RETRY_DELAY = 5
REQUEST_TIMEOUT = 30
RETRY_STATUS_CODES = [429, 500, 502, 503, 504]

NOT_INITIALIZED = "ElevenLabs client not initialized"
SET_API_KEY_HINT = (
    "ElevenLabs client not initialized, please set your API key in the settings"
)


@dataclass(frozen=True)
class Voice:
    voice_id: str
    voice_name: str

    @classmethod
    def default(cls):
        return cls(voice_id="2EiwWnXFnvU5JabPnv8n", voice_name="Clyde")

    @classmethod
    def from_api(cls, payload):
        """Build a voice from one entry of the `GET /voices` response."""
        return cls(voice_id=payload["voice_id"], voice_name=payload["name"])


class ApiError(Exception):
    """The ElevenLabs API answered with an error or could not be reached."""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code


class Elabs:
    """
    Thin wrapper around the ElevenLabs REST API.

    Every call blocks, so the window runs them on background threads.
    Failures are never raised to the caller: they are pushed to one of two
    error channels and the call returns None.

    Args:
        api_errors: channel for failures reported by the API or the network.
        client_errors: channel for misuse of the client (no key, not connected).
    """

    def __init__(self, api_errors, client_errors, retry_delay=RETRY_DELAY):
        self.api_errors = api_errors
        self.client_errors = client_errors
        self.retry_delay = retry_delay
        self.api_key = None
        self.voices = []
        self.session = requests.Session()
        self._connected = False

    @property
    def connected(self):
        return self._connected

    def init(self, api_key):
        """
        Set the API key and check it by fetching the voice list silently.
        The fetched voices are kept in `self.voices`.
        """
        self.api_key = api_key.strip() if api_key else None
        self._connected = False
        self.voices = []
        voices = self.get_voices(raise_errors=False) if self.api_key else None
        if voices is not None:
            logging.info("Connected to ElevenLabs")
            self.voices = voices
            self._connected = True
            return True

        self.sync_error(SET_API_KEY_HINT)
        return False

    def sync_error(self, error):
        self.client_errors.send(error)

    def _headers(self):
        return {"xi-api-key": self.api_key, "Accept": "application/json"}

    def _request(self, method, endpoint, **kwargs):
        """
        Sends a request to the ElevenLabs API, retrying rate limits, server errors and network failures.

        Returns:
            requests.Response: The successful response.

        Raises:
            ApiError: If the API rejects the request or every attempt fails.
        """
        url = f"{API_BASE_URL}{endpoint}"
        last_error = None
        for attempt in range(1, MAX_RETRIES + 1):
            try:
                response = self.session.request(
                    method,
                    url,
                    headers=self._headers(),
                    timeout=REQUEST_TIMEOUT,
                    **kwargs,
                )
            except requests.RequestException as e:
                logging.warning(f"Network error on attempt {attempt}: {e}")
                last_error = ApiError(str(e))
            else:
                if response.status_code == 200:
                    return response
                last_error = ApiError(_error_detail(response), response.status_code)
                if response.status_code not in RETRY_STATUS_CODES:
                    logging.error(
                        f"{method} {endpoint} failed: {response.status_code}\n{response.text}"
                    )
                    raise last_error
                logging.warning(
                    f"Received status code {response.status_code}. Retrying after delay."
                )
            if attempt < MAX_RETRIES:
                time.sleep(self.retry_delay * attempt)
        raise last_error

    def get_voices(self, raise_errors=True):
        """
        Fetch the voices available to this account.

        Args:
            raise_errors (bool): Push failures to the API error channel.

        Returns:
            list[Voice]: Voices sorted by name, or None on failure.
        """
        if not self.api_key:
            self.sync_error(NOT_INITIALIZED)
            return None

        try:
            response = self._request("GET", "/voices")
            voices = [Voice.from_api(item) for item in response.json()["voices"]]
        except (ApiError, ValueError, KeyError) as e:
            logging.error(f"Failed to fetch voices: {e}")
            if raise_errors:
                self.api_errors.send(f"API Error: {e}")
            return None

        logging.debug(f"Fetched {len(voices)} voices")
        return sorted(voices, key=lambda voice: voice.voice_name.lower())

    def text_to_speech(self, text, voice, model_id=DEFAULT_MODEL_ID):
        """Synthesize `text` with `voice`. Returns mp3 bytes, or None on failure."""
        if not self.api_key:
            self.sync_error(NOT_INITIALIZED)
            return None

        logging.debug(f"Sending TTS request for chunk: {text[:50]}...")
        try:
            response = self._request(
                "POST",
                f"/text-to-speech/{voice.voice_id}",
                json={"text": text, "model_id": model_id},
            )
        except ApiError as e:
            logging.error(f"Failed to create speech: {e}")
            self.api_errors.send(f"API Error: {e}")
            return None
        return response.content

    def save_speech(self, text, voice, path, model_id=DEFAULT_MODEL_ID, progress=None):
        """
        Synthesize `text` and save it as a single audio file.

        Long text is split into chunks the API accepts; each chunk is written
        next to `path`, then the parts are joined and removed.

        Args:
            text (str): Text to speak.
            voice (Voice): Voice to speak it with.
            path (str): Destination audio file.
            model_id (str): ElevenLabs model.
            progress (callable, optional): Receives an int percentage.

        Returns:
            str: `path` on success, None otherwise.
        """
        if not self.connected:
            self.sync_error(SET_API_KEY_HINT)
            return None

        chunks = split_text(text, MAX_CHARS_PER_REQUEST)
        if not chunks:
            self.sync_error("Please enter some text first")
            return None

        directory = os.path.dirname(path)
        if not path or not os.path.isdir(directory or "."):
            logging.error(f"Invalid path provided: {path}")
            self.sync_error(f"Invalid save path: {path}")
            return None

        parts = []
        total = len(chunks)
        try:
            for i, chunk in enumerate(chunks):
                _report(progress, int(i / total * 100))
                logging.debug(f"Processing chunk {i + 1}/{total}")
                audio = self.text_to_speech(chunk, voice, model_id)
                if audio is None:
                    return None
                part = part_filename(path, i)
                parts.append(part)
                with open(part, "wb") as f:
                    f.write(audio)

            concatenate_audio_files(parts, path)
        except Exception as e:
            logging.exception(f"Error in saving audio files: {e}")
            self.sync_error(f"Failed to save audio: {e}")
            return None
        finally:
            cleanup_files(parts)

        _report(progress, 100)
        logging.info(f"Speech saved to {path}")
        return path


def _report(progress, value):
    if progress is not None:
        progress(value)


def _error_detail(response):
    """Best-effort human readable message from an ElevenLabs error response."""
    try:
        payload = response.json()
    except ValueError:
        return f"{response.status_code} {response.text}".strip()
    detail = payload.get("detail") if isinstance(payload, dict) else None
    if isinstance(detail, dict):
        detail = detail.get("message") or detail.get("status")
    return f"{response.status_code} {detail}" if detail else str(response.status_code)
