from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from typing import Any

import pytest

from caseintake.application.dto.master_data_dto import ComplaintGroup, MasterDataBatch, OptionItem
from caseintake.application.dto.patient_dto import PatientResponse
from caseintake.domain.constants import CollectionKind, StepStatus, WizardMode, WizardStep
from caseintake.ui.case_wizard.case_wizard import CaseWizard
from caseintake.ui.case_wizard.notices import WizardNotice
from caseintake.ui.case_wizard.ports import SubmissionRejectedError
from caseintake.ui.widgets.async_task import run_inline


class _DeferredRunner:
    def __init__(self) -> None:
        self.calls: list[tuple] = []

    def __call__(self, parent, fn, on_success=None, on_error=None, on_finished=None) -> None:
        self.calls.append((fn, on_success, on_error, on_finished))

    def finish(self, index: int = 0) -> None:
        fn, on_success, on_error, on_finished = self.calls.pop(index)
        run_inline(None, fn, on_success, on_error, on_finished)

    def finish_all(self) -> None:
        while self.calls:
            self.finish()


class _MasterData:
    def fetch_categories(self, categories: Iterable[str]) -> MasterDataBatch:
        batch = MasterDataBatch()
        for category in categories:
            batch.options[category] = []
        batch.options["iop_ranges"] = [OptionItem(value="I1", label="10-21 mmHg")]
        return batch

    def list_complaint_groups(self) -> list[ComplaintGroup]:
        return [
            ComplaintGroup(
                category_id="G1",
                category_name="Vision",
                complaints=[OptionItem(value="C1", label="Blurred vision")],
            )
        ]


class _Patients:
    def __init__(self, visit_types: dict[str, str] | None = None) -> None:
        self.visit_types = visit_types or {}
        self.patients = [
            PatientResponse(id="p1", full_name="Asha Rao", sex="F", status="active"),
            PatientResponse(id="p2", full_name="Ravi Kumar", sex="M", status="active"),
        ]
        self.visit_lookups: list[str] = []

    def list_active(self, limit: int | None = None) -> list[PatientResponse]:
        return self.patients[: limit or None]

    def get_patient(self, patient_id: str) -> PatientResponse | None:
        return next((item for item in self.patients if item.id == patient_id), None)

    def determine_visit_type(self, patient_id: str) -> str:
        self.visit_lookups.append(patient_id)
        if patient_id not in self.visit_types:
            raise RuntimeError("lookup failed")
        return self.visit_types[patient_id]


class _Sink:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.documents: list[dict[str, Any]] = []

    def __call__(self, document: dict[str, Any]) -> dict[str, str]:
        self.documents.append(document)
        if self.error is not None:
            raise self.error
        return {"id": "case-1"}


def _wizard(
    *,
    runner=run_inline,
    patients: _Patients | None = None,
    sink: _Sink | None = None,
    submitted: list | None = None,
) -> tuple[CaseWizard, list[WizardNotice]]:
    notices: list[WizardNotice] = []
    wizard = CaseWizard(
        master_data=_MasterData(),
        patients=patients or _Patients({"p1": "Follow-up-2", "p2": "First"}),
        submit=sink or _Sink(),
        runner=runner,
        notify=notices.append,
        case_number_factory=lambda: "OPT2024-TEST-0001",
        today=lambda: date(2024, 5, 17),
        on_submitted=submitted.append if submitted is not None else None,
    )
    return wizard, notices


def _fill_minimum(wizard: CaseWizard) -> None:
    wizard.select_patient("p1")
    wizard.set_field("no_complaints", True)


def test_open_create_starts_fresh_session() -> None:
    wizard, notices = _wizard()
    wizard.open_create()

    assert wizard.is_open is True
    assert wizard.mode == WizardMode.CREATE
    assert wizard.draft.case_no == "OPT2024-TEST-0001"
    assert wizard.draft.case_date == "2024-05-17"
    assert wizard.draft.visit_type == "First"
    assert [patient.id for patient in wizard.patients] == ["p1", "p2"]
    assert wizard.options.is_ready("iop_ranges") is True
    assert wizard.options.is_ready("complaints") is True
    assert wizard.step_statuses()[WizardStep.REGISTER] == StepStatus.ACTIVE
    assert notices == []


def test_selecting_patient_detects_visit_type() -> None:
    wizard, notices = _wizard()
    wizard.open_create()

    wizard.select_patient("p1")

    assert wizard.draft.patient_id == "p1"
    assert wizard.draft.visit_type == "Follow-up-2"
    assert wizard.selected_patient is not None
    assert wizard.selected_patient.full_name == "Asha Rao"
    assert notices[-1] == WizardNotice(
        level="info",
        title="Visit Type Detected",
        message="This is a Follow-up-2 visit for Asha Rao",
    )


def test_latest_patient_selection_wins() -> None:
    runner = _DeferredRunner()
    wizard, notices = _wizard(runner=runner)
    wizard.open_create()
    runner.finish_all()

    wizard.select_patient("p1")
    wizard.select_patient("p2")
    wizard.set_field("visit_type", "Follow-up-3")
    runner.finish(1)
    runner.finish(0)

    assert wizard.draft.patient_id == "p2"
    assert wizard.draft.visit_type == "First"
    assert [notice.message for notice in notices if notice.title == "Visit Type Detected"] == [
        "This is a First visit for Ravi Kumar"
    ]


def test_visit_type_lookup_failure_falls_back_to_first() -> None:
    wizard, notices = _wizard(patients=_Patients({}))
    wizard.open_create()
    wizard.set_field("visit_type", "Follow-up-1")

    wizard.select_patient("p2")

    assert wizard.draft.visit_type == "First"
    assert all(notice.title != "Visit Type Detected" for notice in notices)


def test_navigation_warns_but_moves() -> None:
    wizard, notices = _wizard()
    wizard.open_create()

    wizard.request_transition(WizardStep.HISTORY)

    assert wizard.current_step == WizardStep.HISTORY
    assert wizard.step_statuses()[WizardStep.REGISTER] == StepStatus.VISITED
    assert notices[-1].level == "warning"
    assert notices[-1].message == "Select a patient and visit type"

    wizard.previous_step()
    wizard.select_patient("p1")
    wizard.next_step()
    assert wizard.step_statuses()[WizardStep.REGISTER] == StepStatus.COMPLETED


def test_incomplete_collection_entry_is_kept_open() -> None:
    wizard, notices = _wizard()
    wizard.open_create()

    wizard.begin_draft(CollectionKind.PRESCRIBED_MEDICINE)
    wizard.update_draft_field(CollectionKind.PRESCRIBED_MEDICINE, "drug_ref", "MOXI")

    assert wizard.commit_draft(CollectionKind.PRESCRIBED_MEDICINE) is False
    assert wizard.draft.prescribed_medicines == []
    editor = wizard.editor(CollectionKind.PRESCRIBED_MEDICINE)
    assert editor.composer["drug_ref"] == "MOXI"
    assert notices[-1].title == "Incomplete entry"
    assert notices[-1].message == "Please fill in Eye and Dosage"

    wizard.update_draft_field(CollectionKind.PRESCRIBED_MEDICINE, "eye", "R")
    wizard.update_draft_field(CollectionKind.PRESCRIBED_MEDICINE, "dosage_ref", "QID")
    assert wizard.commit_draft(CollectionKind.PRESCRIBED_MEDICINE) is True
    assert [item.drug_ref for item in wizard.draft.prescribed_medicines] == ["MOXI"]
    assert wizard.editor(CollectionKind.PRESCRIBED_MEDICINE).composer_open is False

    wizard.remove_item(CollectionKind.PRESCRIBED_MEDICINE, 0)
    assert wizard.draft.prescribed_medicines == []


def test_choosing_complaint_fills_its_category() -> None:
    wizard, _notices = _wizard()
    wizard.open_create()
    wizard.set_field("no_complaints", True)

    wizard.begin_draft(CollectionKind.COMPLAINT)
    state = wizard.update_draft_field(CollectionKind.COMPLAINT, "complaint_ref", "C1")
    assert state.composer["category_ref"] == "G1"

    wizard.commit_draft(CollectionKind.COMPLAINT)
    assert wizard.draft.complaints[0].category_ref == "G1"
    assert wizard.draft.no_complaints is False
    assert wizard.display_rows(CollectionKind.COMPLAINT)[0][0].text == "Blurred vision"


def test_toggle_selection() -> None:
    wizard, _notices = _wizard()
    wizard.open_create()
    wizard.set_field("diagnosis_pending", True)

    wizard.toggle_selection("diagnosis", "CATARACT")
    assert wizard.draft.diagnosis == ["CATARACT"]
    assert wizard.draft.diagnosis_pending is False

    wizard.toggle_selection("diagnosis", "CATARACT")
    assert wizard.draft.diagnosis == []

    with pytest.raises(ValueError, match="does not hold a selection"):
        wizard.toggle_selection("case_no", "x")


def test_submit_requires_identity_fields() -> None:
    sink = _Sink()
    wizard, notices = _wizard(sink=sink)
    wizard.open_create()
    wizard.request_transition(WizardStep.ADVICE)

    assert wizard.submit() is False

    assert sink.documents == []
    assert notices[-2].level == "error"
    assert notices[-2].message == "Please complete required fields: Patient"
    assert wizard.current_step == WizardStep.REGISTER


def test_successful_submit_closes_and_resets() -> None:
    sink = _Sink()
    submitted: list = []
    wizard, notices = _wizard(sink=sink, submitted=submitted)
    wizard.open_create()
    _fill_minimum(wizard)
    wizard.set_field("tests.iop_right", "I1")

    assert wizard.submit() is True

    document = sink.documents[0]
    assert document["case_no"] == "OPT2024-TEST-0001"
    assert document["patient_id"] == "p1"
    assert document["visit_type"] == "Follow-up-2"
    assert document["no_complaints_flag"] is True
    assert document["examination_data"]["tests"]["iop"]["right"] == {"id": "I1", "value": "10-21 mmHg"}
    assert notices[-1].message == "Case saved successfully"
    assert wizard.is_open is False
    assert wizard.draft.case_no == ""
    assert wizard.is_submitting is False
    assert submitted == [{"id": "case-1"}]


def test_rejected_submit_keeps_draft() -> None:
    sink = _Sink(SubmissionRejectedError("Case number already exists: OPT2024-TEST-0001"))
    wizard, notices = _wizard(sink=sink)
    wizard.open_create()
    _fill_minimum(wizard)
    wizard.set_field("chief_complaint", "Blurred vision")

    assert wizard.submit() is True

    assert wizard.is_open is True
    assert wizard.is_submitting is False
    assert wizard.draft.chief_complaint == "Blurred vision"
    assert notices[-1].title == "Save failed"
    assert notices[-1].message == "Case number already exists: OPT2024-TEST-0001"


def test_unexpected_sink_error_is_a_submission_failure() -> None:
    wizard, notices = _wizard(sink=_Sink(KeyError()))
    wizard.open_create()
    _fill_minimum(wizard)

    wizard.submit()

    assert wizard.is_open is True
    assert notices[-1].level == "error"


def test_runner_failure_at_submit_is_caught(monkeypatch) -> None:
    runner = _DeferredRunner()
    wizard, notices = _wizard(runner=runner)
    wizard.open_create()
    runner.finish_all()
    wizard.set_field("patient_id", "p1")

    def _broken_runner(*args, **kwargs) -> None:
        raise RuntimeError("thread pool unavailable")

    monkeypatch.setattr(wizard, "_runner", _broken_runner)

    assert wizard.submit() is False
    assert wizard.is_submitting is False
    assert notices[-1].message == "thread pool unavailable"


def test_submit_while_busy_is_ignored() -> None:
    runner = _DeferredRunner()
    sink = _Sink()
    wizard, _notices = _wizard(runner=runner, sink=sink)
    wizard.open_create()
    runner.finish_all()
    wizard.select_patient("p1")
    runner.finish_all()

    assert wizard.submit() is True
    assert wizard.is_submitting is True
    assert wizard.submit() is False

    runner.finish_all()
    assert len(sink.documents) == 1
    assert wizard.is_open is False


def test_results_after_close_are_dropped() -> None:
    runner = _DeferredRunner()
    wizard, notices = _wizard(runner=runner)
    wizard.open_create()

    wizard.close()
    runner.finish_all()

    assert wizard.patients == ()
    assert wizard.is_open is False
    assert notices == []
    with pytest.raises(ValueError, match="not open"):
        _ = wizard.options


def test_edit_mode_loads_document_and_patient() -> None:
    patients = _Patients({"p1": "Follow-up-3"})
    wizard, _notices = _wizard(patients=patients)
    document = {
        "case_no": "OPT2023-OLD-0001",
        "patient_id": "p1",
        "encounter_date": "2023-12-01",
        "visit_type": "Follow-up-1",
        "complaints": [{"complaintId": "C1", "categoryId": "G1"}],
    }

    wizard.open_edit(document, case_id="case-7")

    assert wizard.mode == WizardMode.EDIT
    assert wizard.case_id == "case-7"
    assert wizard.draft.visit_type == "Follow-up-1"
    assert patients.visit_lookups == []
    assert wizard.selected_patient is not None
    assert wizard.selected_patient.id == "p1"
    assert wizard.draft.no_complaints is False
    assert wizard.draft.diagnosis_pending is True
    with pytest.raises(ValueError, match="Case number cannot be changed"):
        wizard.set_field("case_no", "OPT2024-NEW-0001")


def test_edit_mode_warns_about_unknown_patient() -> None:
    wizard, notices = _wizard()

    wizard.open_edit({"case_no": "X", "patient_id": "ghost"})

    assert wizard.selected_patient is None
    assert notices[-1].message == "Patient ghost was not found"


def test_edits_require_open_session() -> None:
    wizard, _notices = _wizard()
    with pytest.raises(ValueError, match="not open"):
        wizard.set_field("chief_complaint", "x")
