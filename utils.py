import os
import logging
from pydub import AudioSegment
from dotenv import load_dotenv, find_dotenv, set_key

API_KEY_ENV = "ELEVENLABS_API_KEY"
LOG_FILE = "please_speak.log"

# ElevenLabs bills one credit per character
CREDITS_PER_CHAR = 1


def configure_logging(filename=LOG_FILE, level=logging.DEBUG):
    """Send application logs to a file, once per process."""
    logging.basicConfig(
        filename=filename,
        level=level,
        format="%(asctime)s:%(levelname)s:%(message)s",
    )


def split_text(text, chunk_size=5000):
    """
    Splits a given text into chunks of a specified maximum size.
    Args:
        text (str): The input text to be split.
        chunk_size (int, optional): The maximum size of each chunk. Defaults to 5000.
    Returns:
        list of str: A list of text chunks, each with a length up to `chunk_size`.
    """
    text = text.strip()
    if len(text) <= chunk_size:
        return [text] if text else []
    chunks = []
    while text:
        if len(text) <= chunk_size:
            chunks.append(text)
            break
        window = text[:chunk_size]
        split_index = max(window.rfind(punct) for punct in [".", "?", "!", ";"])
        if split_index != -1:
            split_index += 1
        else:
            split_index = window.rfind(" ")
        if split_index <= 0:
            split_index = chunk_size
        chunks.append(text[:split_index].strip())
        text = text[split_index:].lstrip()
    return [chunk for chunk in chunks if chunk]


def estimate_credits(text):
    """
    Estimate the ElevenLabs credits a synthesis request will consume.

    Args:
        text (str): The text that will be sent to the API.

    Returns:
        int: Number of credits, surrounding whitespace excluded.
    """
    return len(text.strip()) * CREDITS_PER_CHAR


def read_api_key():
    """
    Reads the ElevenLabs API key from the environment variable, .env file, or api_key.txt file (in that order).

    Returns:
        str: The API key, or None when no source provides one.
    """
    api_key = os.getenv(API_KEY_ENV)
    if api_key:
        return api_key

    logging.debug("API key not set. Trying to load from .env file.")
    load_dotenv(find_dotenv(usecwd=True))
    api_key = os.getenv(API_KEY_ENV)
    if api_key:
        return api_key

    logging.debug("Trying api_key.txt file.")
    try:
        with open("api_key.txt", "r") as file:
            api_key = file.read().strip()
    except OSError as e:
        logging.info(f"No api_key.txt file: {e}")
        return None

    return api_key or None


def write_api_key(api_key):
    """
    Writes the provided API key to a file. If a .env file exists, the API key entry in it is set.
    If a .env file does not exist but an api_key.txt file exists, its content is replaced with the key.

    Args:
        api_key (str): The API key to be written.

    Returns:
        bool: True if the API key was successfully written, False otherwise.
    """
    try:
        if os.path.exists(".env"):
            set_key(".env", API_KEY_ENV, api_key)
        elif os.path.exists("api_key.txt"):
            with open("api_key.txt", "w") as key_file:
                key_file.write(f"{api_key}\n")
        else:
            return False
        return True
    except OSError as e:
        logging.error(f"Failed to write API key: {e}")
        return False


def part_filename(path, index):
    """Name of the intermediate file holding chunk `index` of `path`."""
    base, extension = os.path.splitext(path)
    return f"{base}_{index}{extension}"


def audio_format(path):
    """Container format pydub should use for `path`, taken from its extension."""
    extension = os.path.splitext(path)[1].lower().lstrip(".")
    return extension or "mp3"


def concatenate_audio_files(file_list, output_file):
    """
    Concatenates multiple audio files into a single output file.

    Args:
        file_list (list of str): List of paths to the audio files to be concatenated.
        output_file (str): Path to the output file where the concatenated audio will be saved.
    """
    existing = [path for path in file_list if os.path.exists(path)]
    if not existing:
        raise FileNotFoundError("No valid files to concatenate.")

    if len(existing) == 1:
        os.replace(existing[0], output_file)
        logging.info(f"Renamed single chunk to {output_file}")
        return

    output_dir = os.path.dirname(output_file)
    if output_dir and not os.path.exists(output_dir):
        os.makedirs(output_dir)

    combined = AudioSegment.empty()
    for path in existing:
        combined += AudioSegment.from_file(path, format=audio_format(path))
    combined.export(output_file, format=audio_format(output_file))
    logging.info(f"Concatenated {len(existing)} audio files into {output_file}")


def cleanup_files(file_list):
    """
    Deletes the files in the provided list, skipping the ones already gone
    and anything that is not a regular file.

    Logs:
        Info: When a file is successfully deleted.
        Error: When a file fails to be deleted.
    """
    for file in file_list:
        if not os.path.isfile(file):
            continue
        try:
            os.remove(file)
            logging.info(f"Deleted temporary file {file}")
        except OSError as e:
            logging.error(f"Failed to delete temporary file {file}: {e}")


def audio_duration(file_path):
    """Length of an audio file in seconds."""
    segment = AudioSegment.from_file(file_path, format=audio_format(file_path))
    return segment.duration_seconds
