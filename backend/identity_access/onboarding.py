"""
Onboarding wizard: three gated steps that end in one profile update.

Steps:
    1. Role (estudiante, docente, coordinador).
    2. Personal data (names, DNI, code, phone, email).
    3. Academic data (faculty, professional school of that faculty).

The wizard is a pure state machine over `OnboardingData`; the web layer keeps
the entered values in hidden form fields between requests, so nothing is
written before the final submit.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Mapping

from .domain import ROLE_FLAGS, SELECTABLE_ROLES, grants_for_role
from .errors import StepIncomplete


FIRST_STEP = 1
LAST_STEP = 3

STEP_TITLES = {
    1: "Selecciona tu rol",
    2: "Datos personales",
    3: "Datos académicos",
}

REQUIRED_FIELDS: dict[int, tuple[str, ...]] = {
    1: ("role",),
    2: ("first_name", "last_name", "dni", "code", "phone", "email"),
    3: ("faculty", "professional_school"),
}

# Faculty -> professional schools offered during onboarding.
FACULTIES: dict[str, tuple[str, ...]] = {
    "Ingeniería": ("Sistemas", "Civil", "Industrial"),
    "Ciencias de la Salud": ("Medicina Humana", "Enfermería", "Odontología"),
    "Educación": ("Inicial", "Primaria", "Secundaria"),
}


def schools_for(faculty: str) -> tuple[str, ...]:
    return FACULTIES.get((faculty or "").strip(), ())


@dataclass
class OnboardingData:
    role: str = ""
    first_name: str = ""
    second_name: str = ""
    last_name: str = ""
    dni: str = ""
    code: str = ""
    phone: str = ""
    email: str = ""
    faculty: str = ""
    professional_school: str = ""

    @classmethod
    def from_form(cls, form: Mapping[str, object]) -> "OnboardingData":
        values = {}
        for f in fields(cls):
            raw = form.get(f.name)
            values[f.name] = raw if isinstance(raw, str) else ""
        return cls(**values)

    def as_dict(self) -> dict[str, str]:
        return asdict(self)


class OnboardingWizard:
    def __init__(self, data: OnboardingData | None = None, step: int = FIRST_STEP):
        self.data = data or OnboardingData()
        self.step = min(max(int(step), FIRST_STEP), LAST_STEP)
        self._drop_foreign_school()

    def _drop_foreign_school(self) -> None:
        # A school that does not belong to the chosen faculty is stale input.
        if self.data.professional_school and self.data.professional_school not in schools_for(self.data.faculty):
            self.data.professional_school = ""

    def select_faculty(self, faculty: str) -> None:
        if faculty != self.data.faculty:
            self.data.faculty = faculty
            self.data.professional_school = ""

    def missing_fields(self, step: int | None = None) -> tuple[str, ...]:
        step = self.step if step is None else step
        missing = [name for name in REQUIRED_FIELDS[step] if not getattr(self.data, name).strip()]
        if step == 1 and "role" not in missing and self.data.role not in SELECTABLE_ROLES:
            missing.append("role")
        if step == 3 and "faculty" not in missing and self.data.faculty.strip() not in FACULTIES:
            missing.append("faculty")
        if (
            step == 3
            and "professional_school" not in missing
            and self.data.professional_school.strip() not in schools_for(self.data.faculty)
        ):
            missing.append("professional_school")
        return tuple(missing)

    def is_step_complete(self, step: int | None = None) -> bool:
        return not self.missing_fields(step)

    def can_advance(self) -> bool:
        return self.is_step_complete()

    @property
    def is_finished(self) -> bool:
        return all(self.is_step_complete(s) for s in range(FIRST_STEP, LAST_STEP + 1))

    def advance(self) -> int:
        missing = self.missing_fields()
        if missing:
            raise StepIncomplete(self.step, missing)
        if self.step < LAST_STEP:
            self.step += 1
        return self.step

    def back(self) -> int:
        if self.step > FIRST_STEP:
            self.step -= 1
        return self.step

    def first_incomplete_step(self) -> int | None:
        for step in range(FIRST_STEP, LAST_STEP + 1):
            if not self.is_step_complete(step):
                return step
        return None

    def profile_update(self) -> dict[str, object]:
        """Payload for the single `users` update that completes onboarding.

        Raises StepIncomplete for the first step that is not complete.
        """
        pending = self.first_incomplete_step()
        if pending is not None:
            raise StepIncomplete(pending, self.missing_fields(pending))
        d = self.data
        first, second, last = d.first_name.strip(), d.second_name.strip(), d.last_name.strip()
        granted = grants_for_role(d.role)
        payload: dict[str, object] = {
            "first_name": first,
            "second_name": second or None,
            "last_name": last,
            "full_name": " ".join(p for p in (first, second, last) if p),
            "dni": d.dni.strip(),
            "codigo_matricula": d.code.strip(),
            "phone": d.phone.strip(),
            "email": d.email.strip(),
            "faculty": d.faculty.strip(),
            "professional_school": d.professional_school.strip(),
        }
        # Only grant; flags set by an administrator are never revoked here.
        for flag in ROLE_FLAGS:
            if flag in granted:
                payload[flag] = True
        return payload


__all__ = [
    "FACULTIES",
    "FIRST_STEP",
    "LAST_STEP",
    "REQUIRED_FIELDS",
    "STEP_TITLES",
    "OnboardingData",
    "OnboardingWizard",
    "schools_for",
]
