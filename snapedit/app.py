"""
Application entry point, logging setup and dark-theme stylesheet.

Usage:
    python -m snapedit
    snapedit          (after pip install)

Set SNAPEDIT_LOG_LEVEL=debug to see pipeline dispatches and session commits.
"""

import logging
import os
import sys

from PyQt6.QtWidgets import QApplication

from snapedit.config import APP_NAME, LOG_LEVEL_ENV
from snapedit.main_window import MainWindow

DARK_STYLESHEET = """
    QMainWindow { background: #2b2b2b; }
    QWidget { background: #2b2b2b; color: #ddd; font-size: 10pt; }
    QListWidget { background: #1e1e1e; border: 1px solid #444; }
    QListWidget::item { padding: 4px; }
    QGroupBox { border: 1px solid #555; border-radius: 4px; margin-top: 8px; padding-top: 12px; font-weight: bold; }
    QGroupBox::title { subcontrol-origin: margin; left: 8px; padding: 0 4px; }
    QTabWidget::pane { border: 1px solid #444; }
    QTabBar::tab { background: #333; border: 1px solid #444; padding: 6px 12px; }
    QTabBar::tab:selected { background: #3a6ea5; }
    QLineEdit, QSpinBox, QComboBox { background: #1e1e1e; border: 1px solid #555; border-radius: 3px; padding: 3px; }
    QPushButton { background: #3a3a3a; border: 1px solid #555; border-radius: 4px; padding: 6px 12px; }
    QPushButton:hover { background: #4a4a4a; }
    QPushButton:pressed { background: #2a2a2a; }
    QPushButton:checked { background: #3a6ea5; border-color: #5a8ec5; }
    QPushButton:disabled { color: #666; }
    QToolBar { background: #333; border-bottom: 1px solid #444; spacing: 4px; padding: 4px; }
    QStatusBar { background: #333; border-top: 1px solid #444; }
"""


def setup_logging() -> logging.Logger:
    """Attach a single stderr handler to the package logger.

    The level comes from SNAPEDIT_LOG_LEVEL (default WARNING); unknown
    names fall back to the default.  Safe to call more than once.
    """
    level_name = os.environ.get(LOG_LEVEL_ENV, "WARNING").upper()
    level = getattr(logging, level_name, None)
    if not isinstance(level, int):
        level = logging.WARNING

    logger = logging.getLogger(APP_NAME)
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("[%(asctime)s] %(levelname)s: %(message)s"))
        logger.addHandler(handler)
    logger.propagate = False
    return logger


def main():
    setup_logging()

    app = QApplication(sys.argv)
    app.setApplicationName(APP_NAME)
    app.setStyleSheet(DARK_STYLESHEET)

    window = MainWindow()
    window.show()

    try:
        sys.exit(app.exec())
    except (SystemExit, KeyboardInterrupt):
        pass


if __name__ == "__main__":
    main()
