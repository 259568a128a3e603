"""
Placeholder resolution for workflow action configs.

``{event.<path>}`` reads from the triggering event, ``{workflow.<path>}`` from
values earlier actions wrote to the workflow context. Paths are dot
separated and walk nested dicts (and list indexes). Resolution is a single
non-recursive pass: a resolved value that itself looks like a placeholder is
left alone, and unknown paths stay in the text verbatim.
"""

import json
import re
from typing import Any, Dict, List, Optional

PLACEHOLDER_PATTERN = re.compile(r"\{(event|workflow)\.([A-Za-z0-9_\-]+(?:\.[A-Za-z0-9_\-]+)*)\}")


class _Unresolved:
    """Marker returned by lookups that found nothing."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self):
        return False

    def __repr__(self):
        return "UNRESOLVED"


UNRESOLVED = _Unresolved()


def lookup_path(data: Any, path: str) -> Any:
    """Walk ``a.b.0.c`` through dicts and lists. Returns UNRESOLVED on a miss."""
    current = data
    for part in path.split("."):
        if isinstance(current, dict):
            if part not in current:
                return UNRESOLVED
            current = current[part]
        elif isinstance(current, (list, tuple)):
            try:
                current = current[int(part)]
            except (ValueError, IndexError):
                return UNRESOLVED
        else:
            return UNRESOLVED
    return current


def stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return str(value)


class VariableResolver:
    """Resolves placeholders against one event and one workflow context.

    Every placeholder that could not be resolved is remembered in
    ``unresolved`` so the step audit can report it.
    """

    def __init__(self, event: Optional[Dict[str, Any]] = None, variables: Optional[Dict[str, Any]] = None):
        self.scopes = {
            "event": event or {},
            "workflow": variables if variables is not None else {},
        }
        self.unresolved: List[str] = []

    def lookup(self, scope: str, path: str) -> Any:
        value = lookup_path(self.scopes.get(scope, {}), path)
        if value is UNRESOLVED:
            name = f"{scope}.{path}"
            if name not in self.unresolved:
                self.unresolved.append(name)
        return value

    def render(self, template: Any) -> Any:
        """Substitute every placeholder inside a string. Non-strings pass through."""
        if not isinstance(template, str):
            return template

        def _sub(match: re.Match) -> str:
            value = self.lookup(match.group(1), match.group(2))
            if value is UNRESOLVED:
                return match.group(0)
            return stringify(value)

        return PLACEHOLDER_PATTERN.sub(_sub, template)

    def resolve_value(self, template: Any) -> Any:
        """
        Like render(), but a string that is exactly one placeholder yields the
        raw value (number, list, dict) instead of its string form. An unknown
        single placeholder yields UNRESOLVED.
        """
        if not isinstance(template, str):
            return template
        match = PLACEHOLDER_PATTERN.fullmatch(template.strip())
        if match:
            return self.lookup(match.group(1), match.group(2))
        return self.render(template)

    def render_structure(self, obj: Any) -> Any:
        """render() applied to every string in nested dicts / lists."""
        if isinstance(obj, str):
            return self.render(obj)
        if isinstance(obj, dict):
            return {k: self.render_structure(v) for k, v in obj.items()}
        if isinstance(obj, list):
            return [self.render_structure(v) for v in obj]
        return obj


def find_placeholders(text: str) -> List[str]:
    return [f"{m.group(1)}.{m.group(2)}" for m in PLACEHOLDER_PATTERN.finditer(text or "")]
