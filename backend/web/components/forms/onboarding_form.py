"""
Onboarding wizard component.

Why:
    Renders one step of the three-step wizard. Values of the other steps
    travel as hidden inputs so nothing is stored before the final submit.

Behavior:
    - The continue (and final) button is `disabled` while the current step has
      blank required fields; HTMX re-validates on every input and swaps only
      the action bar, so typing never loses focus.
    - Changing the faculty re-renders the whole step to refresh the school list.
"""
import json
from typing import Optional

from components.base import Component
from identity_access.onboarding import (
    FACULTIES,
    LAST_STEP,
    STEP_TITLES,
    OnboardingWizard,
    schools_for,
)
from .auth_forms import error_box
from .fields import RadioGroupField, SelectField, TextInputField
from .submit import SubmitButton


ROLE_CHOICES = (
    ("estudiante", "Tesista (estudiante)", "Registra y da seguimiento a tu proyecto de tesis."),
    ("docente", "Docente", "Asesora y revisa proyectos de tesis."),
    ("coordinador", "Coordinador", "Coordina los proyectos de tu escuela profesional."),
)

PERSONAL_FIELDS = (
    ("first_name", "Primer nombre", True, "text"),
    ("second_name", "Segundo nombre (opcional)", False, "text"),
    ("last_name", "Apellidos", True, "text"),
    ("dni", "DNI", True, "text"),
    ("code", "Código de matrícula o docente", True, "text"),
    ("phone", "Teléfono", True, "tel"),
    ("email", "Correo electrónico", True, "email"),
)

STEP_FIELDS = {
    1: ("role",),
    2: tuple(name for name, *_ in PERSONAL_FIELDS),
    3: ("faculty", "professional_school"),
}

_VALIDATE_VALS = json.dumps({"action": "validate"})


class OnboardingWizardForm(Component):
    def __init__(self, wizard: OnboardingWizard, error: Optional[str] = None):
        self.wizard = wizard
        self.error = error

    def render(self) -> str:
        step = self.wizard.step
        data = self.wizard.data.as_dict()
        hidden = "".join(
            f'<input type="hidden" name="{name}" value="{self.escape(value)}">'
            for name, value in data.items()
            if name not in STEP_FIELDS[step]
        )
        progress = self._render_progress(step)
        body = self._render_step(step, data)
        actions = self._render_actions(step)
        title = self.escape(STEP_TITLES[step])
        return f"""
        <section class="onboarding" id="onboarding-wizard" aria-labelledby="onboarding-title">
            <h2 id="onboarding-title">Completa tu perfil</h2>
            {progress}
            <form method="post" action="/onboarding/step" class="onboarding-form"
                  hx-post="/onboarding/step" hx-target="#onboarding-wizard" hx-select="#onboarding-wizard" hx-swap="outerHTML">
                <input type="hidden" name="step" value="{step}">
                {hidden}
                <h3 class="onboarding-step-title">{title}</h3>
                {body}
                {error_box(self.error)}
                {actions}
            </form>
        </section>
        """

    def _render_progress(self, step: int) -> str:
        items = []
        for number in range(1, LAST_STEP + 1):
            state = self.classes("wizard-step", current=number == step, done=number < step)
            aria = ' aria-current="step"' if number == step else ""
            items.append(f'<li class="{state}"{aria}>{number}. {self.escape(STEP_TITLES[number])}</li>')
        return '<ol class="wizard-progress">' + "".join(items) + "</ol>"

    def _render_step(self, step: int, data: dict) -> str:
        if step == 1:
            return RadioGroupField("role", "¿Cuál es tu rol en la universidad?", required=True).render(
                choices=ROLE_CHOICES, value=data["role"]
            )
        if step == 2:
            rendered = [
                TextInputField(name, label, required=required).render(
                    value=data[name], input_type=kind, class_="form-input"
                )
                for name, label, required, kind in PERSONAL_FIELDS
            ]
            return "\n".join(rendered)
        faculty_attrs = {
            "hx_post": "/onboarding/step",
            "hx_trigger": "change",
            "hx_vals": _VALIDATE_VALS,
            "hx_include": "closest form",
            "hx_target": "#onboarding-wizard",
            "hx_select": "#onboarding-wizard",
            "hx_swap": "outerHTML",
        }
        faculty_html = SelectField("faculty", "Facultad", required=True).render(
            options=tuple(FACULTIES), value=data["faculty"], class_="form-input", **faculty_attrs
        )
        school_html = SelectField("professional_school", "Escuela profesional", required=True).render(
            options=schools_for(data["faculty"]),
            value=data["professional_school"],
            placeholder="Selecciona primero una facultad" if not data["faculty"] else "Selecciona una opción",
            class_="form-input",
        )
        return f"{faculty_html}\n{school_html}"

    def _render_actions(self, step: int) -> str:
        gated = not self.wizard.can_advance()
        buttons = []
        if step > 1:
            buttons.append(SubmitButton("Atrás", name="action", value="back", variant="secondary").render())
        if step < LAST_STEP:
            buttons.append(
                SubmitButton("Continuar", name="action", value="next", disabled=gated, data_action="wizard-next").render()
            )
        else:
            buttons.append(
                SubmitButton(
                    "Finalizar",
                    name="action",
                    value="finish",
                    disabled=gated,
                    data_action="wizard-finish",
                    formaction="/onboarding",
                    hx_post="/onboarding",
                ).render()
            )
        attrs = self.attributes(
            id="onboarding-actions",
            class_="form-actions",
            hx_post="/onboarding/step",
            hx_trigger="input delay:200ms from:closest form, change from:closest form",
            hx_include="closest form",
            hx_vals=_VALIDATE_VALS,
            hx_target="this",
            hx_select="#onboarding-actions",
            hx_swap="outerHTML",
        )
        return f"<div {attrs}>" + "".join(buttons) + "</div>"
