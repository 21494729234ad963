from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from caseintake.application.services.case_service import CaseService
from caseintake.application.services.master_data_service import MasterDataService
from caseintake.application.services.patient_service import PatientService
from caseintake.config import settings
from caseintake.infrastructure.db.repositories.case_repo import CaseRepository
from caseintake.infrastructure.db.repositories.master_data_repo import MasterDataRepository
from caseintake.infrastructure.db.repositories.patient_repo import PatientRepository
from caseintake.infrastructure.db.session import session_scope
from caseintake.ui.case_wizard.case_wizard import CaseWizard
from caseintake.ui.case_wizard.notices import Notifier, log_notice
from caseintake.ui.case_wizard.ports import AsyncRunner
from caseintake.ui.widgets.async_task import run_async
from caseintake.ui.widgets.notifications import qt_notifier


@dataclass
class Container:
    master_data_repo: MasterDataRepository
    patient_repo: PatientRepository
    case_repo: CaseRepository

    master_data_service: MasterDataService
    patient_service: PatientService
    case_service: CaseService


def build_container(session_factory: Callable = session_scope) -> Container:
    master_data_repo = MasterDataRepository()
    patient_repo = PatientRepository()
    case_repo = CaseRepository()

    master_data_service = MasterDataService(repo=master_data_repo, session_factory=session_factory)
    patient_service = PatientService(
        patient_repo=patient_repo,
        case_repo=case_repo,
        session_factory=session_factory,
    )
    case_service = CaseService(
        case_repo=case_repo,
        patient_repo=patient_repo,
        session_factory=session_factory,
    )

    return Container(
        master_data_repo=master_data_repo,
        patient_repo=patient_repo,
        case_repo=case_repo,
        master_data_service=master_data_service,
        patient_service=patient_service,
        case_service=case_service,
    )


def open_case_wizard(
    container: Container,
    *,
    case_id: str | None = None,
    runner: AsyncRunner = run_async,
    notify: Notifier | None = None,
    parent: Any = None,
    on_submitted: Callable[[Any], None] | None = None,
) -> CaseWizard:
    """Wizard opened for a new case, or for ``case_id`` when given.

    Without an explicit ``notify``, notices go to message boxes over ``parent``
    when one is given and to the log otherwise.
    """
    if notify is None:
        notify = qt_notifier(parent) if parent is not None else log_notice
    document = None
    if case_id is not None:
        document = container.case_service.get_case_document(case_id)
        if document is None:
            raise ValueError("Case not found")
    wizard = CaseWizard(
        master_data=container.master_data_service,
        patients=container.patient_service,
        submit=container.case_service.submit_callback(case_id),
        runner=runner,
        notify=notify,
        parent=parent,
        patient_list_limit=settings.patient_list_limit,
        on_submitted=on_submitted,
    )
    if document is None:
        wizard.open_create()
    else:
        wizard.open_edit(document, case_id=case_id)
    return wizard
