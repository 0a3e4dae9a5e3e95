"""
Base Component Class for SIPeT UI Components

This module provides the foundation for all server-rendered UI components.
Using pure Python for HTML generation keeps escaping explicit and makes the
markup easy to assert in tests.
"""

from typing import Optional, Any
import html


class Component:
    """Base class for all UI components in SIPeT

    Benefits:
    - Automatic HTML escaping for security
    - Easy testing with unit tests
    - No template language to learn
    """

    def render(self) -> str:
        """Render the component as an HTML string"""
        raise NotImplementedError("Subclasses must implement render()")

    @staticmethod
    def escape(text: Optional[Any]) -> str:
        """Escape HTML entities to prevent XSS attacks (None renders as empty)."""
        return html.escape(str(text)) if text is not None else ""

    @staticmethod
    def classes(*args: str, **conditionals: bool) -> str:
        """Build a CSS class string with conditional classes

        Example:
            >>> Component.classes("role-card", locked=True, active=False)
            "role-card locked"
        """
        classes = [a for a in args if a]
        classes.extend(key.replace("_", "-") for key, value in conditionals.items() if value)
        return " ".join(classes)

    @staticmethod
    def attributes(**attrs: Any) -> str:
        """Build HTML attributes from keyword arguments

        Example:
            >>> Component.attributes(id="test", data_value="123", disabled=True)
            'id="test" data-value="123" disabled'
        """
        result = []
        for key, value in attrs.items():
            # Special-case trailing underscore for reserved names: class_ -> class, for_ -> for
            if key.endswith("_"):
                key = key[:-1]
            else:
                # Convert inner underscores to hyphens (hx_post -> hx-post)
                key = key.replace("_", "-")

            if value is True:
                result.append(key)
            elif value is not False and value is not None:
                result.append(f'{key}="{html.escape(str(value))}"')

        return " ".join(result)
