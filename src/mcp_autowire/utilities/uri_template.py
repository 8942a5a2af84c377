"""Precompiled URI templates for template resources."""

from __future__ import annotations

import re
from typing import Any

_VARIABLE = re.compile(r"{(\w+)}")


class UriTemplate:
    """A URI template with named ``{variable}`` placeholders.

    The template is validated and compiled once, so a ``UriTemplate`` can be
    built at import time and handed to ``mcp_resource(uri_template=...)`` in
    place of a plain string.

    Example:

    ```python
    template = UriTemplate("users://{user_id}/profile")
    template.variables  # ("user_id",)
    template.match("users://42/profile")  # {"user_id": "42"}
    ```
    """

    def __init__(self, template: str):
        if not isinstance(template, str) or not template:
            raise ValueError("URI template must be a non-empty string")

        residue = _VARIABLE.sub("", template)
        if "{" in residue or "}" in residue:
            raise ValueError(f"Malformed URI template {template!r}: placeholders must look like {{name}}")

        variables = tuple(_VARIABLE.findall(template))
        duplicates = {name for name in variables if variables.count(name) > 1}
        if duplicates:
            raise ValueError(f"Duplicate variables {sorted(duplicates)} in URI template {template!r}")

        self._template = template
        self._variables = variables
        pattern = ""
        last = 0
        for match in _VARIABLE.finditer(template):
            pattern += re.escape(template[last : match.start()]) + f"(?P<{match.group(1)}>[^/]+)"
            last = match.end()
        pattern += re.escape(template[last:])
        self._pattern = re.compile(f"^{pattern}$")

    @property
    def template(self) -> str:
        return self._template

    @property
    def variables(self) -> tuple[str, ...]:
        """Variable names in the order they appear in the template."""
        return self._variables

    def match(self, uri: str) -> dict[str, Any] | None:
        """Extract the variables from ``uri``, or return None if it does not match."""
        matched = self._pattern.match(uri)
        if matched is None:
            return None
        return matched.groupdict()

    def __str__(self) -> str:
        return self._template

    def __repr__(self) -> str:
        return f"UriTemplate({self._template!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, UriTemplate):
            return NotImplemented
        return self._template == other._template

    def __hash__(self) -> int:
        return hash(self._template)
