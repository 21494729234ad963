from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from caseintake.domain.constants import NOTICE_LEVELS


@dataclass(frozen=True)
class WizardNotice:
    level: str
    title: str
    message: str

    def __post_init__(self) -> None:
        if self.level not in NOTICE_LEVELS:
            raise ValueError(f"Unknown notice level: {self.level}")


Notifier = Callable[[WizardNotice], None]


def log_notice(notice: WizardNotice) -> None:
    logger = logging.getLogger(__name__)
    if notice.level == "error":
        logger.error("%s: %s", notice.title, notice.message)
    elif notice.level == "warning":
        logger.warning("%s: %s", notice.title, notice.message)
    else:
        logger.info("%s: %s", notice.title, notice.message)


def error_notice(message: str, title: str = "Error") -> WizardNotice:
    return WizardNotice(level="error", title=title, message=message)


def warning_notice(message: str, title: str = "Warning") -> WizardNotice:
    return WizardNotice(level="warning", title=title, message=message)


def success_notice(message: str, title: str = "Success") -> WizardNotice:
    return WizardNotice(level="success", title=title, message=message)


def info_notice(message: str, title: str = "Info") -> WizardNotice:
    return WizardNotice(level="info", title=title, message=message)
