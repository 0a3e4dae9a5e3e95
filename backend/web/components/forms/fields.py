"""
Form field components.

These small components keep markup consistent across the auth and onboarding
forms while staying simple enough to assert in tests.
"""

from typing import Optional, Sequence, Tuple

from ..base import Component


class FormField(Component):
    """Wrapper that renders label, input slot, help, and error text."""

    def __init__(
        self,
        field_id: str,
        label: str,
        *,
        required: bool = False,
        help_text: Optional[str] = None,
        error_text: Optional[str] = None,
        state: str = "default",
        input_id: Optional[str] = None,
    ) -> None:
        self.field_id = field_id
        # Same field name may appear in two forms of one page (e.g. email).
        self.input_id = input_id or field_id
        self.label = label
        self.required = required
        self.help_text = help_text
        self.error_text = error_text
        self.state = state

    def render(self, input_html: str) -> str:
        state_class = f" form-field--{self.state}" if self.state != "default" else ""
        required_marker = (
            '<span class="form-required" aria-hidden="true">*</span>'
            if self.required
            else ""
        )
        help_html = (
            f'<p class="form-help" id="{self.input_id}-help">{self.escape(self.help_text)}</p>'
            if self.help_text
            else ""
        )
        error_html = (
            f'<p class="form-error" role="alert" id="{self.input_id}-error">{self.escape(self.error_text)}</p>'
            if self.error_text
            else ""
        )

        label_attrs = self.attributes(
            for_=self.input_id,
            class_="form-label",
        )

        return (
            f'<div class="form-field{state_class}">'
            f"<label {label_attrs}>"
            f"{self.escape(self.label)}{required_marker}"
            "</label>"
            f"{input_html}"
            f"{help_html}"
            f"{error_html}"
            "</div>"
        )

    def _aria(self) -> dict:
        return {
            "aria_describedby": f"{self.input_id}-help" if self.help_text else None,
            "aria_invalid": "true" if self.error_text else "false",
        }


class TextInputField(FormField):
    """Single-line text input field with consistent wrapper and labeling.

    Behavior:
        - Renders <input> with appropriate ARIA attributes.
        - Password inputs never echo a value back into the markup.
    """

    def render(
        self,
        *,
        value: str = "",
        input_type: str = "text",
        autocomplete: Optional[str] = None,
        placeholder: Optional[str] = None,
        **attrs: str,
    ) -> str:
        input_attrs = self.attributes(
            id=self.input_id,
            name=self.field_id,
            type=input_type,
            value=None if input_type == "password" else value,
            autocomplete=autocomplete,
            placeholder=placeholder,
            required=self.required,
            **self._aria(),
            **attrs,
        )
        input_html = f"<input {input_attrs}>"
        return super().render(input_html)


class SelectField(FormField):
    """<select> with a neutral placeholder option."""

    def render(
        self,
        *,
        options: Sequence[str],
        value: str = "",
        placeholder: str = "Selecciona una opción",
        **attrs: str,
    ) -> str:
        select_attrs = self.attributes(
            id=self.input_id,
            name=self.field_id,
            required=self.required,
            **self._aria(),
            **attrs,
        )
        items = [f'<option value="">{self.escape(placeholder)}</option>']
        for option in options:
            selected = " selected" if option == value else ""
            items.append(f'<option value="{self.escape(option)}"{selected}>{self.escape(option)}</option>')
        return super().render(f"<select {select_attrs}>{''.join(items)}</select>")


class RadioGroupField(FormField):
    """Fieldset of radio buttons; `choices` are (value, label, hint) tuples."""

    def render(self, *, choices: Sequence[Tuple[str, str, str]], value: str = "") -> str:
        items = []
        for choice_value, label, hint in choices:
            input_id = f"{self.field_id}-{choice_value}"
            input_attrs = self.attributes(
                id=input_id,
                type="radio",
                name=self.field_id,
                value=choice_value,
                checked=choice_value == value,
            )
            items.append(
                f'<label class="radio-option" for="{input_id}">'
                f"<input {input_attrs}>"
                f'<span class="radio-label">{self.escape(label)}</span>'
                f'<span class="radio-hint">{self.escape(hint)}</span>'
                "</label>"
            )
        error_html = (
            f'<p class="form-error" role="alert" id="{self.input_id}-error">{self.escape(self.error_text)}</p>'
            if self.error_text
            else ""
        )
        return (
            f'<fieldset class="form-field radio-group" id="{self.field_id}-group">'
            f'<legend class="form-label">{self.escape(self.label)}</legend>'
            f"{''.join(items)}"
            f"{error_html}"
            "</fieldset>"
        )
