"""Minimal URI templates with ``{param}`` placeholders.

Each placeholder stands for exactly one path segment: it never matches ``/``.
"""

from __future__ import annotations

import re
from collections.abc import Mapping

from tandem.protocol.errors import MissingTemplateParameterError

_PLACEHOLDER = re.compile(r"\{([^{}]+)\}")


def template_parameters(template: str) -> list[str]:
    """Return placeholder names in order of appearance."""
    return _PLACEHOLDER.findall(template)


def expand_uri_template(template: str, values: Mapping[str, object]) -> str:
    """Substitute every placeholder in *template*.

    Raises:
        MissingTemplateParameterError: If any placeholder has no value (an
            empty string counts as missing).
    """
    missing = [
        name for name in template_parameters(template)
        if values.get(name) is None or str(values.get(name)) == ""
    ]
    if missing:
        raise MissingTemplateParameterError(template, missing)
    return _PLACEHOLDER.sub(lambda m: str(values[m.group(1)]), template)


def match_uri_template(template: str, uri: str) -> dict[str, str] | None:
    """Extract placeholder values if *uri* is an instance of *template*."""
    pattern = ""
    position = 0
    names: list[str] = []
    for match in _PLACEHOLDER.finditer(template):
        pattern += re.escape(template[position:match.start()])
        pattern += f"(?P<_{len(names)}>[^/]+)"
        names.append(match.group(1))
        position = match.end()
    pattern += re.escape(template[position:])

    found = re.fullmatch(pattern, uri)
    if found is None:
        return None
    return {name: found.group(f"_{i}") for i, name in enumerate(names)}
