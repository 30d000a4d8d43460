"""Prompt template rendering for dataset runs.

This module is intentionally narrow: it only substitutes `{{ variable }}`
placeholders in a prompt template with values from one dataset item. Dispatch,
batching, and model invocation happen outside this module.

Design constraints:
    - Deterministic rendering for identical inputs.
    - Unknown placeholders are left verbatim so missing columns are visible in
      the rendered prompt instead of silently disappearing.
    - No hidden side effects (no I/O, no global state mutation).
"""

import re
from typing import Any, List, Mapping


# Placeholder names: letters, digits, underscores, dots and dashes, with optional
# inner whitespace (`{{name}}`, `{{ name }}`).
PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z0-9_.\-]+)\s*\}\}")


def template_variables(template: str) -> List[str]:
    """Return placeholder names in first-appearance order, without duplicates."""
    return list(dict.fromkeys(PLACEHOLDER.findall(template or "")))


def render_template(template: str, variables: Mapping[str, Any]) -> str:
    """Substitute placeholders with item values.

    Args:
        template: Prompt text containing `{{ name }}` placeholders.
        variables: Values for one dataset item. Non-string values are rendered
            with `str()`; `None` renders as an empty string.

    Returns:
        Rendered prompt text.
    """
    if not template:
        return ""

    def substitute(match: re.Match) -> str:
        name = match.group(1)
        if name not in variables:
            return match.group(0)
        value = variables[name]
        return "" if value is None else str(value)

    return PLACEHOLDER.sub(substitute, template)


def missing_variables(template: str, variables: Mapping[str, Any]) -> List[str]:
    """Return placeholders in `template` that `variables` does not provide."""
    return [name for name in template_variables(template) if name not in variables]
