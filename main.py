import logging
import logging.handlers
import sys

from config import LOG_BACKUPS, LOG_DIR, LOG_FILE, LOG_LEVEL, LOG_MAX_MB


def _configure_logging() -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    try:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.handlers.RotatingFileHandler(
                LOG_FILE,
                maxBytes=max(1, LOG_MAX_MB) * 1024 * 1024,
                backupCount=max(0, LOG_BACKUPS),
                encoding="utf-8",
            )
        )
    except OSError as exc:
        print(f"file logging disabled: {exc}", file=sys.stderr)

    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )


def main() -> int:
    _configure_logging()
    from PyQt6.QtWidgets import QApplication

    from scanstock.gui.main_window import MainWindow

    app = QApplication(sys.argv)
    window = MainWindow()
    window.show()
    return app.exec()


if __name__ == "__main__":
    raise SystemExit(main())
