import sys
import logging
from PyQt6.QtWidgets import QApplication
from gui import TTSWindow
from utils import configure_logging


def main():
    configure_logging()
    try:
        app = QApplication(sys.argv)
        app.setApplicationName("Please Speak")
        window = TTSWindow()
        window.show()
        window.start()
        sys.exit(app.exec())
    except Exception as e:
        logging.exception(f"Fatal error: {e}")
        print(f"An error occurred: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
