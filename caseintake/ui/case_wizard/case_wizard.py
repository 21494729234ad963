from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import date
from typing import Any

from caseintake.application.dto.case_dto import (
    CaseDraft,
    collection_attr,
    normalize_flags,
    with_field,
    with_items,
)
from caseintake.application.dto.patient_dto import PatientResponse
from caseintake.domain.constants import (
    CollectionKind,
    MasterDataCategory,
    StepStatus,
    VisitType,
    WizardMode,
    WizardStep,
)
from caseintake.domain.rules.collection_rules import describe_missing
from caseintake.domain.rules.step_rules import validation_message
from caseintake.domain.rules.visit_type_rules import is_valid_visit_type
from caseintake.ui.case_wizard.case_document_mapper import from_document, to_submission
from caseintake.ui.case_wizard.collection_editor import (
    BeginDraft,
    CancelDraft,
    CollectionAction,
    CollectionEditorState,
    CommitDraft,
    RemoveItem,
    UpdateDraftField,
    reduce_collection,
)
from caseintake.ui.case_wizard.display_labels import DisplayCell, entry_display_row
from caseintake.ui.case_wizard.draft_factory import new_case_draft
from caseintake.ui.case_wizard.notices import (
    Notifier,
    error_notice,
    info_notice,
    log_notice,
    success_notice,
    warning_notice,
)
from caseintake.ui.case_wizard.option_cache import OptionCache
from caseintake.ui.case_wizard.ports import AsyncRunner, MasterDataSource, PatientDirectory, SubmitCallback
from caseintake.ui.case_wizard.wizard_state import (
    GoNext,
    GoPrevious,
    GoToStep,
    WizardAction,
    WizardState,
    reduce_wizard,
    step_statuses,
)
from caseintake.ui.widgets.async_task import run_async

# Multi-select fields edited by toggling one reference at a time.
_SELECTION_PATHS = ("diagnosis", "blood.blood_tests")

_IDENTITY_LABELS = (
    ("patient_id", "Patient"),
    ("visit_type", "Visit Type"),
    ("case_no", "Case Number"),
)


class CaseWizard:
    """Session state of the case-intake wizard.

    One instance may be opened and closed repeatedly; every ``open_*`` call
    starts a fresh session with its own option cache. Network-bound work runs
    through ``runner``; results arriving after the session ended are dropped.
    """

    def __init__(
        self,
        *,
        master_data: MasterDataSource,
        patients: PatientDirectory,
        submit: SubmitCallback,
        runner: AsyncRunner = run_async,
        notify: Notifier = log_notice,
        parent: Any = None,
        patient_list_limit: int = 1000,
        case_number_factory: Callable[[], str] | None = None,
        today: Callable[[], date] = date.today,
        on_submitted: Callable[[Any], None] | None = None,
    ) -> None:
        self._master_data = master_data
        self._patient_directory = patients
        self._submit_callback = submit
        self._runner = runner
        self._notify = notify
        self._parent = parent
        self._patient_list_limit = patient_list_limit
        self._case_number_factory = case_number_factory
        self._today = today
        self._on_submitted = on_submitted
        self._logger = logging.getLogger(__name__)

        self._session = 0
        self._open = False
        self._mode = WizardMode.CREATE
        self._case_id: str | None = None
        self._draft = CaseDraft()
        self._state = WizardState()
        self._composers: dict[CollectionKind, tuple[Mapping[str, Any] | None, tuple[str, ...]]] = {}
        self._cache: OptionCache | None = None
        self._patients: tuple[PatientResponse, ...] = ()
        self._patients_loading = False
        self._selected_patient: PatientResponse | None = None
        self._visit_generation = 0
        self._submitting = False

    # ── lifecycle ──

    def open_create(self) -> None:
        draft = new_case_draft(today=self._today(), case_number_factory=self._case_number_factory)
        self._start_session(WizardMode.CREATE, draft)
        self._logger.info("Case wizard opened: mode=create case_no=%s", self._draft.case_no)

    def open_edit(self, document: Mapping[str, Any], *, case_id: str | None = None) -> None:
        self._start_session(WizardMode.EDIT, normalize_flags(from_document(document)))
        self._case_id = case_id
        self._logger.info("Case wizard opened: mode=edit case_no=%s", self._draft.case_no)
        if self._draft.patient_id:
            self._lookup_patient(self._draft.patient_id)

    def _start_session(self, mode: WizardMode, draft: CaseDraft) -> None:
        if self._open:
            self._end_session()
        self._session += 1
        self._open = True
        self._mode = mode
        self._draft = draft
        self._case_id = None
        self._state = WizardState()
        self._composers = {}
        self._selected_patient = None
        self._submitting = False
        self._cache = OptionCache(
            self._master_data,
            runner=self._runner,
            notify=self._notify,
            parent=self._parent,
        )
        self._cache.fetch(MasterDataCategory.values())
        self._cache.fetch_complaint_groups()
        self._load_patients()

    def _end_session(self) -> None:
        self._session += 1
        self._visit_generation += 1
        self._open = False
        if self._cache is not None:
            self._cache.close()
        self._cache = None
        self._draft = CaseDraft()
        self._state = WizardState()
        self._composers = {}
        self._patients = ()
        self._patients_loading = False
        self._selected_patient = None
        self._submitting = False
        self._case_id = None

    def close(self) -> None:
        if not self._open:
            return
        self._logger.info("Case wizard closed without saving: case_no=%s", self._draft.case_no)
        self._end_session()

    def cancel(self) -> None:
        self.close()

    def _require_open(self) -> None:
        if not self._open:
            raise ValueError("Case wizard is not open")

    # ── read-only views ──

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def mode(self) -> WizardMode:
        return self._mode

    @property
    def case_id(self) -> str | None:
        return self._case_id

    @property
    def draft(self) -> CaseDraft:
        return self._draft

    @property
    def state(self) -> WizardState:
        return self._state

    @property
    def current_step(self) -> WizardStep:
        return self._state.current

    @property
    def is_submitting(self) -> bool:
        return self._submitting

    @property
    def options(self) -> OptionCache:
        if self._cache is None:
            raise ValueError("Case wizard is not open")
        return self._cache

    @property
    def patients(self) -> tuple[PatientResponse, ...]:
        return self._patients

    @property
    def patients_loading(self) -> bool:
        return self._patients_loading

    @property
    def selected_patient(self) -> PatientResponse | None:
        return self._selected_patient

    def snapshot(self) -> dict[str, Any]:
        return self._draft.model_dump()

    def step_statuses(self) -> dict[WizardStep, StepStatus]:
        return step_statuses(self._state)

    # ── field edits ──

    def set_field(self, path: str, value: Any) -> CaseDraft:
        self._require_open()
        if path == "case_no" and self._mode == WizardMode.EDIT:
            raise ValueError("Case number cannot be changed for an existing case")
        self._draft = with_field(self._draft, path, value)
        return self._draft

    def toggle_selection(self, path: str, ref: str) -> CaseDraft:
        self._require_open()
        if path not in _SELECTION_PATHS:
            raise ValueError(f"Field does not hold a selection: {path}")
        current = list(self._draft.diagnosis if path == "diagnosis" else self._draft.blood.blood_tests)
        if ref in current:
            current.remove(ref)
        else:
            current.append(ref)
        self._draft = with_field(self._draft, path, current)
        return self._draft

    # ── collections ──

    def editor(self, kind: CollectionKind | str) -> CollectionEditorState:
        kind = CollectionKind(kind)
        composer, missing = self._composers.get(kind, (None, ()))
        return CollectionEditorState(
            kind=kind,
            items=tuple(getattr(self._draft, collection_attr(kind))),
            composer=composer,
            missing_fields=missing,
        )

    def _apply_collection(self, kind: CollectionKind | str, action: CollectionAction) -> CollectionEditorState:
        self._require_open()
        before = self.editor(kind)
        after = reduce_collection(before, action)
        self._composers[after.kind] = (after.composer, after.missing_fields)
        if after.items != before.items:
            self._draft = with_items(self._draft, after.kind, after.items)
        return after

    def begin_draft(self, kind: CollectionKind | str) -> CollectionEditorState:
        return self._apply_collection(kind, BeginDraft())

    def update_draft_field(self, kind: CollectionKind | str, key: str, value: Any) -> CollectionEditorState:
        state = self._apply_collection(kind, UpdateDraftField(key=key, value=value))
        if state.kind == CollectionKind.COMPLAINT and key == "complaint_ref":
            category = self._complaint_category(str(value or ""))
            state = self._apply_collection(kind, UpdateDraftField(key="category_ref", value=category))
        return state

    def _complaint_category(self, complaint_ref: str) -> str | None:
        if self._cache is None:
            return None
        for group in self._cache.complaint_groups:
            if any(item.value == complaint_ref for item in group.complaints):
                return group.category_id
        return None

    def commit_draft(self, kind: CollectionKind | str) -> bool:
        after = self._apply_collection(kind, CommitDraft())
        if after.missing_fields:
            self._notify(warning_notice(describe_missing(after.missing_fields), title="Incomplete entry"))
            return False
        return True

    def cancel_draft(self, kind: CollectionKind | str) -> CollectionEditorState:
        return self._apply_collection(kind, CancelDraft())

    def remove_item(self, kind: CollectionKind | str, index: int) -> CollectionEditorState:
        return self._apply_collection(kind, RemoveItem(index=index))

    def display_rows(self, kind: CollectionKind | str) -> list[list[DisplayCell]]:
        cache = self.options
        return [entry_display_row(kind, entry, cache) for entry in self.editor(kind).items]

    # ── navigation ──

    def _navigate(self, action: WizardAction) -> WizardState:
        self._require_open()
        previous = self._state
        self._state = reduce_wizard(previous, action)
        result = self._state.last_validation
        if self._state is not previous and result is not None and not result.valid:
            message = validation_message(result)
            if message:
                self._notify(warning_notice(message, title="Validation"))
        return self._state

    def request_transition(self, target: WizardStep | str) -> WizardState:
        return self._navigate(GoToStep(target=WizardStep(target), snapshot=self.snapshot()))

    def next_step(self) -> WizardState:
        return self._navigate(GoNext(snapshot=self.snapshot()))

    def previous_step(self) -> WizardState:
        return self._navigate(GoPrevious(snapshot=self.snapshot()))

    # ── patients ──

    def _load_patients(self) -> None:
        session = self._session
        self._patients_loading = True

        def _done(result: list[PatientResponse]) -> None:
            if session != self._session:
                return
            self._patients_loading = False
            self._patients = tuple(result)
            self._remember_selected()

        def _failed(exc: Exception) -> None:
            if session != self._session:
                return
            self._patients_loading = False
            self._logger.warning("Failed to load patients: %s", exc)
            self._notify(error_notice("Failed to load patients"))

        self._run(
            lambda: self._patient_directory.list_active(self._patient_list_limit),
            on_success=_done,
            on_error=_failed,
        )

    def _lookup_patient(self, patient_id: str) -> None:
        session = self._session

        def _done(patient: PatientResponse | None) -> None:
            if session != self._session:
                return
            if patient is None:
                self._notify(warning_notice(f"Patient {patient_id} was not found"))
                return
            self._selected_patient = patient
            if all(item.id != patient.id for item in self._patients):
                self._patients = (*self._patients, patient)

        def _failed(exc: Exception) -> None:
            if session != self._session:
                return
            self._logger.warning("Patient lookup failed for %s: %s", patient_id, exc)
            self._notify(error_notice("Failed to load patient details"))

        self._run(lambda: self._patient_directory.get_patient(patient_id), on_success=_done, on_error=_failed)

    def _remember_selected(self) -> None:
        patient_id = self._draft.patient_id
        for item in self._patients:
            if item.id == patient_id:
                self._selected_patient = item
                return

    def select_patient(self, patient_id: str) -> CaseDraft:
        """Set the patient and detect the visit type; the latest selection wins."""
        self._require_open()
        self._visit_generation += 1
        generation = self._visit_generation
        self._draft = with_field(self._draft, "patient_id", patient_id)
        self._selected_patient = None
        self._remember_selected()
        clean = self._draft.patient_id
        if not clean:
            return self._draft

        def _is_current() -> bool:
            return self._open and generation == self._visit_generation and self._draft.patient_id == clean

        def _done(visit_type: str) -> None:
            if not _is_current():
                self._logger.debug("Discarding stale visit type for patient %s", clean)
                return
            if not is_valid_visit_type(visit_type):
                visit_type = VisitType.FIRST.value
            self._draft = with_field(self._draft, "visit_type", visit_type)
            patient = self._selected_patient
            who = patient.full_name if patient is not None and patient.id == clean else "this patient"
            self._notify(info_notice(f"This is a {visit_type} visit for {who}", title="Visit Type Detected"))

        def _failed(exc: Exception) -> None:
            if not _is_current():
                return
            self._logger.warning("Visit type detection failed for %s: %s", clean, exc)
            self._draft = with_field(self._draft, "visit_type", VisitType.FIRST.value)

        self._run(lambda: self._patient_directory.determine_visit_type(clean), on_success=_done, on_error=_failed)
        return self._draft

    # ── submission ──

    def document(self) -> dict[str, Any]:
        labels = self._cache.labels(MasterDataCategory.IOP_RANGES) if self._cache else {}
        return to_submission(self._draft, iop_labels=labels)

    def submit(self) -> bool:
        """Start submitting the draft; returns False when nothing was sent."""
        self._require_open()
        if self._submitting:
            self._logger.debug("Submit ignored: submission already in progress")
            return False
        missing = [label for path, label in _IDENTITY_LABELS if not getattr(self._draft, path)]
        if missing:
            self._notify(error_notice("Please complete required fields: " + ", ".join(missing)))
            self.request_transition(WizardStep.REGISTER)
            return False

        session = self._session
        self._submitting = True
        try:
            document = self.document()
            self._run(
                lambda: self._submit_callback(document),
                on_success=lambda result: self._on_submit_success(session, result),
                on_error=lambda exc: self._on_submit_error(session, exc),
                on_finished=lambda: self._on_submit_finished(session),
            )
        except Exception as exc:  # noqa: BLE001
            self._on_submit_error(session, exc)
            self._on_submit_finished(session)
            return False
        return True

    def _on_submit_success(self, session: int, result: Any) -> None:
        if session != self._session:
            return
        self._logger.info("Case submitted: case_no=%s mode=%s", self._draft.case_no, self._mode.value)
        self._notify(success_notice("Case saved successfully"))
        self._end_session()
        if self._on_submitted is not None:
            self._on_submitted(result)

    def _on_submit_error(self, session: int, exc: Exception) -> None:
        if session != self._session:
            return
        self._logger.warning("Case submission failed: %s", exc)
        message = str(exc) or "Failed to save case"
        self._notify(error_notice(message, title="Save failed"))

    def _on_submit_finished(self, session: int) -> None:
        if session != self._session:
            return
        self._submitting = False

    def _run(
        self,
        fn: Callable[[], Any],
        *,
        on_success: Callable[[Any], None],
        on_error: Callable[[Exception], None],
        on_finished: Callable[[], None] | None = None,
    ) -> None:
        self._runner(self._parent, fn, on_success=on_success, on_error=on_error, on_finished=on_finished)

