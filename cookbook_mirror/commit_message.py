"""
Commit message rendering.

Templates use string.Template placeholders ($name or ${name}). Every
placeholder must be provided: a missing variable is an error instead of an
empty substitution.
"""

from string import Template
from typing import Dict, Any, Optional

from cookbook_mirror.config_manager import DEFAULT_COMMIT_MESSAGE


class TemplateRenderError(Exception):
    """Raised when a commit message template cannot be rendered."""

    def __init__(self, template: str, message: str, variable: Optional[str] = None):
        self.template = template
        self.variable = variable
        super().__init__(message)


def render(template: str, variables: Optional[Dict[str, Any]] = None) -> str:
    """Render a commit message template with the given variables.

    Raises:
        TemplateRenderError: If the template references an undefined variable
            or contains a malformed placeholder
    """
    variables = {str(k): v for k, v in (variables or {}).items()}
    try:
        return Template(template).substitute(variables)
    except KeyError as e:
        name = e.args[0]
        raise TemplateRenderError(
            template, f"Commit message references undefined variable '{name}'", variable=name
        ) from e
    except ValueError as e:
        raise TemplateRenderError(template, f"Malformed commit message template: {e}") from e


def render_commit_message(config) -> str:
    """Render the configured commit message, or the default one."""
    text = config.commit_message_text
    if text is None:
        text = DEFAULT_COMMIT_MESSAGE
    return render(str(text), config.commit_message_variables)
