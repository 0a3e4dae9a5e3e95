"""
Layout Component for SIPeT

Main layout wrapper that combines header and content into a complete HTML page.
"""

from typing import Optional, Dict, Any
from .base import Component
from .header import Header


class Layout(Component):
    """Main layout component that assembles the complete page"""

    def __init__(
        self,
        title: str,
        content: str,
        user: Optional[Dict[str, Any]] = None,
        show_header: bool = True,
        current_path: str = "/",
    ):
        """
        Args:
            title: Page title (will be escaped)
            content: Main content HTML (pre-rendered components)
            user: Header view of the signed-in user (optional)
            show_header: Whether to show the identity header (default: True)
            current_path: Current URL path for active navigation highlighting
        """
        self.title = title
        self.content = content
        self.user = user
        self.show_header = show_header
        self.current_path = current_path

    def render(self) -> str:
        """Render the complete HTML document including header and footer."""
        header_html = Header(self.user, self.current_path).render() if self.show_header else ""
        return f"""<!DOCTYPE html>
<html lang="es">
<head>
    {self._render_head()}
</head>
<body>
    <a href="#main-content" class="skip-link">Saltar al contenido principal</a>

    {header_html}

    <div id="live-region" class="sr-only" role="status" aria-live="polite" aria-atomic="true"></div>

    <main id="main-content" class="main-content" role="main">
        {self.content}
        <footer class="content-footer" role="contentinfo">
            <p class="text-center text-muted">SIPeT - Sistema de Proyectos de Tesis</p>
        </footer>
    </main>
</body>
</html>"""

    def _render_head(self) -> str:
        """Render the HTML head section"""
        return f"""
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <meta name="description" content="SIPeT - Sistema de gestión de proyectos de tesis">

    <title>{self.escape(self.title)} - SIPeT</title>

    <link rel="stylesheet" href="/static/css/sipet.css?v=1">
    <script src="https://unpkg.com/htmx.org@1.9.12" defer></script>
    """
