from __future__ import annotations

from PySide6.QtWidgets import QMessageBox, QWidget

from caseintake.ui.case_wizard.notices import Notifier, WizardNotice, log_notice

_ICONS = {
    "success": QMessageBox.Icon.Information,
    "warning": QMessageBox.Icon.Warning,
    "error": QMessageBox.Icon.Critical,
    "info": QMessageBox.Icon.Information,
}


def show_notice(parent: QWidget | None, notice: WizardNotice) -> QMessageBox:
    log_notice(notice)
    box = QMessageBox(parent)
    box.setWindowTitle(notice.title)
    box.setText(notice.message)
    box.setIcon(_ICONS.get(notice.level, QMessageBox.Icon.Information))
    # Window-modal at most; the wizard keeps running behind it.
    box.open()
    return box


def qt_notifier(parent: QWidget | None) -> Notifier:
    def _notify(notice: WizardNotice) -> None:
        show_notice(parent, notice)

    return _notify
