"""
Onboarding wizard state machine: gated steps, value retention on back,
faculty/school consistency and the single completion payload.
"""
from __future__ import annotations

import pytest

from identity_access.errors import StepIncomplete
from identity_access.onboarding import FACULTIES, OnboardingData, OnboardingWizard, schools_for


def _complete(**overrides) -> OnboardingData:
    values = dict(
        role="estudiante",
        first_name="Ana",
        second_name="",
        last_name="Rojas Díaz",
        dni="12345678",
        code="2020123",
        phone="987654321",
        email="ana@example.edu",
        faculty="Ingeniería",
        professional_school="Sistemas",
    )
    values.update(overrides)
    return OnboardingData(**values)


def test_step_one_requires_a_selectable_role():
    wizard = OnboardingWizard()
    assert wizard.missing_fields() == ("role",)
    assert not wizard.can_advance()

    wizard.data.role = "revisor"
    assert wizard.missing_fields() == ("role",)

    wizard.data.role = "docente"
    assert wizard.can_advance()
    assert wizard.advance() == 2


def test_advance_raises_with_missing_fields():
    wizard = OnboardingWizard(OnboardingData(role="estudiante", first_name="Ana"), step=2)
    with pytest.raises(StepIncomplete) as exc:
        wizard.advance()
    assert exc.value.step == 2
    assert "dni" in exc.value.missing
    assert wizard.step == 2


def test_whitespace_only_values_do_not_count():
    wizard = OnboardingWizard(_complete(first_name="   "), step=2)
    assert wizard.missing_fields() == ("first_name",)


def test_back_keeps_entered_values():
    data = _complete()
    wizard = OnboardingWizard(data, step=3)
    assert wizard.back() == 2
    assert wizard.back() == 1
    assert wizard.back() == 1
    assert wizard.data.first_name == "Ana"


def test_step_is_clamped():
    assert OnboardingWizard(step=0).step == 1
    assert OnboardingWizard(step=9).step == 3


def test_changing_faculty_clears_school():
    wizard = OnboardingWizard(_complete(), step=3)
    wizard.select_faculty("Educación")
    assert wizard.data.professional_school == ""
    assert wizard.missing_fields() == ("professional_school",)


def test_school_from_another_faculty_is_dropped():
    wizard = OnboardingWizard(_complete(faculty="Educación", professional_school="Sistemas"), step=3)
    assert wizard.data.professional_school == ""
    assert schools_for("Educación") == FACULTIES["Educación"]


def test_unknown_faculty_is_missing():
    wizard = OnboardingWizard(_complete(faculty="Astrología", professional_school=""), step=3)
    assert "faculty" in wizard.missing_fields()


def test_profile_update_for_docente_grants_advisor_and_reviewer():
    payload = OnboardingWizard(_complete(role="docente")).profile_update()
    assert payload["is_advisor"] is True
    assert payload["is_reviewer"] is True
    assert "is_student" not in payload
    assert "is_coordinator" not in payload


def test_profile_update_payload_fields():
    payload = OnboardingWizard(_complete(second_name="María")).profile_update()
    assert payload["full_name"] == "Ana María Rojas Díaz"
    assert payload["codigo_matricula"] == "2020123"
    assert payload["is_student"] is True
    assert "role" not in payload and "code" not in payload


def test_profile_update_points_at_first_incomplete_step():
    with pytest.raises(StepIncomplete) as exc:
        OnboardingWizard(_complete(phone=""), step=3).profile_update()
    assert exc.value.step == 2
    assert exc.value.missing == ("phone",)


def test_from_form_ignores_non_string_values():
    data = OnboardingData.from_form({"role": "docente", "dni": object(), "unknown": "x"})
    assert data.role == "docente"
    assert data.dni == ""
