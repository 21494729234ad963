from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

# Ensure project root on sys.path when running as script
ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from caseintake.bootstrap.startup import run_migrations, seed_master_data  # noqa: E402
from caseintake.config import DB_FILE, LOG_DIR, settings  # noqa: E402
from caseintake.container import build_container  # noqa: E402


def _setup_logging() -> Path:
    log_path = LOG_DIR / "app.log"
    handler = RotatingFileHandler(log_path, maxBytes=2_000_000, backupCount=3, encoding="utf-8")
    formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.INFO)
    root_logger.addHandler(handler)
    return log_path


def _install_exception_hook(log_path: Path) -> None:
    def _handle_exception(exc_type, exc, tb) -> None:
        logging.getLogger(__name__).error("Unhandled exception", exc_info=(exc_type, exc, tb))
        sys.stderr.write(f"Unexpected error. Report: {log_path}\n")
        sys.__excepthook__(exc_type, exc, tb)

    sys.excepthook = _handle_exception


def main() -> int:
    log_path = _setup_logging()
    _install_exception_hook(log_path)
    logger = logging.getLogger(__name__)
    logger.info("Starting case intake: db=%s", DB_FILE)
    if not run_migrations(database_url=settings.database_url, log_dir=LOG_DIR, root_dir=ROOT_DIR):
        return 1
    container = build_container()
    if settings.seed_master_data:
        seed_master_data(container)
    return 0


if __name__ == "__main__":
    sys.exit(main())
