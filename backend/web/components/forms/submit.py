"""
Submit button component.

Keeps handling of disabled state consistent; a gated wizard step renders its
continue button disabled until the step is complete.
"""

from typing import Any, Optional

from ..base import Component


class SubmitButton(Component):
    """Primary form action button."""

    def __init__(
        self,
        label: str,
        *,
        name: Optional[str] = None,
        value: Optional[str] = None,
        variant: str = "primary",
        disabled: bool = False,
        data_action: Optional[str] = None,
        **attrs: Any,
    ) -> None:
        self.label = label
        self.name = name
        self.value = value
        self.variant = variant
        self.disabled = disabled
        self.data_action = data_action
        self.extra = attrs

    def render(self) -> str:
        attrs = self.attributes(
            type="submit",
            class_=f"btn btn-{self.variant}",
            name=self.name,
            value=self.value,
            disabled=self.disabled,
            aria_disabled="true" if self.disabled else None,
            data_action=self.data_action,
            **self.extra,
        )
        return f"<button {attrs}>{self.escape(self.label)}</button>"
