from __future__ import annotations

from caseintake.application.dto.case_dto import CaseDraft, Surgery
from caseintake.domain.constants import STEP_ORDER, StepStatus, WizardStep
from caseintake.domain.rules.step_rules import is_step_valid
from caseintake.ui.case_wizard.wizard_state import (
    GoNext,
    GoPrevious,
    GoToStep,
    ResetWizard,
    WizardState,
    clear_validation,
    is_last_step,
    reduce_wizard,
    step_status,
    step_statuses,
)


def test_transition_from_blank_register_marks_it_visited() -> None:
    state = reduce_wizard(WizardState(), GoToStep(WizardStep.HISTORY, CaseDraft().model_dump()))

    assert state.current == WizardStep.HISTORY
    assert step_status(state, WizardStep.REGISTER) == StepStatus.VISITED
    assert state.last_validation is not None
    assert state.last_validation.valid is False


def test_transition_with_patient_marks_register_completed() -> None:
    snapshot = CaseDraft(patient_id="P1", visit_type="First").model_dump()

    state = reduce_wizard(WizardState(), GoToStep(WizardStep.HISTORY, snapshot))

    assert state.current == WizardStep.HISTORY
    assert step_status(state, WizardStep.REGISTER) == StepStatus.COMPLETED
    assert step_status(state, WizardStep.HISTORY) == StepStatus.ACTIVE
    assert step_status(state, WizardStep.ADVICE) == StepStatus.UNTOUCHED


def test_navigation_never_blocks() -> None:
    snapshot = CaseDraft().model_dump()
    state = WizardState()
    for target in reversed(STEP_ORDER):
        state = reduce_wizard(state, GoToStep(target, snapshot))
        assert state.current == target


def test_revisiting_a_fixed_step_moves_it_to_completed() -> None:
    blank = CaseDraft().model_dump()
    state = reduce_wizard(WizardState(), GoNext(blank))
    assert WizardStep.REGISTER in state.visited

    state = reduce_wizard(state, GoPrevious(blank))
    assert state.current == WizardStep.REGISTER

    filled = CaseDraft(patient_id="P1", visit_type="Follow-up-1").model_dump()
    state = reduce_wizard(state, GoNext(filled))
    assert WizardStep.REGISTER in state.completed
    assert WizardStep.REGISTER not in state.visited


def test_going_to_current_step_is_noop() -> None:
    state = WizardState()
    assert reduce_wizard(state, GoToStep(WizardStep.REGISTER, {})) is state


def test_next_and_previous_clamp_at_the_ends() -> None:
    blank = CaseDraft().model_dump()
    state = reduce_wizard(WizardState(), GoPrevious(blank))
    assert state.current == WizardStep.REGISTER

    state = reduce_wizard(state, GoToStep(WizardStep.ADVICE, blank))
    assert is_last_step(state) is True
    state = reduce_wizard(state, GoNext(blank))
    assert state.current == WizardStep.ADVICE
    assert step_status(state, WizardStep.ADVICE) == StepStatus.ACTIVE


def test_reset_and_clear_validation() -> None:
    state = reduce_wizard(WizardState(), GoNext(CaseDraft().model_dump()))
    assert clear_validation(state).last_validation is None
    assert reduce_wizard(state, ResetWizard()) == WizardState()


def test_step_statuses_cover_every_step() -> None:
    statuses = step_statuses(WizardState())
    assert list(statuses) == list(STEP_ORDER)
    assert statuses[WizardStep.REGISTER] == StepStatus.ACTIVE


def test_surgery_alone_satisfies_advice_step() -> None:
    draft = CaseDraft(surgeries=[Surgery(eye="R", surgery_ref="S1", anesthesia="")])
    assert draft.prescribed_medicines == []
    assert is_step_valid(WizardStep.ADVICE, draft.model_dump()) is True
