from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any, Protocol

from caseintake.application.dto.master_data_dto import ComplaintGroup, MasterDataBatch
from caseintake.application.dto.patient_dto import PatientResponse


class MasterDataSource(Protocol):
    def fetch_categories(self, categories: Iterable[str]) -> MasterDataBatch: ...

    def list_complaint_groups(self) -> list[ComplaintGroup]: ...


class PatientDirectory(Protocol):
    def list_active(self, limit: int | None = None) -> list[PatientResponse]: ...

    def get_patient(self, patient_id: str) -> PatientResponse | None: ...

    def determine_visit_type(self, patient_id: str) -> str: ...


SubmitCallback = Callable[[dict[str, Any]], Any]

# Same shape as caseintake.ui.widgets.async_task.run_async.
AsyncRunner = Callable[..., Any]


class SubmissionRejectedError(Exception):
    """Raised by a submission sink; the message is shown to the user."""
