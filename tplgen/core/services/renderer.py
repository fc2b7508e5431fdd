"""
Template renderer — Jinja2 over plain template text.

Undefined variables are errors, not empty strings: a template that
references data the config does not provide fails to render.
"""

from __future__ import annotations

from typing import Any

import jinja2

from tplgen.core.errors import RenderError

_ENV = jinja2.Environment(
    undefined=jinja2.StrictUndefined,
    autoescape=False,
    keep_trailing_newline=True,
    trim_blocks=True,
    lstrip_blocks=True,
)


def render(template_text: str, data: dict[str, Any]) -> str:
    """Render ``template_text`` with ``data`` as the template context.

    Raises:
        RenderError: On template syntax errors, undefined variables, or
            any error raised while the template runs.
    """
    try:
        template = _ENV.from_string(template_text)
    except jinja2.TemplateSyntaxError as e:
        raise RenderError(f"Template syntax error on line {e.lineno}: {e.message}") from e

    try:
        return template.render(data)
    except jinja2.TemplateError as e:
        raise RenderError(f"Template rendering failed: {e}") from e
    except Exception as e:
        raise RenderError(f"Template raised {type(e).__name__}: {e}") from e
