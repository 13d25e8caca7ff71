"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of specwatch, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Route pattern normalization.

Every framework spells path parameters its own way; the document keys paths
by a template where each parameter is written as {name}. Templates depend only
on the route pattern, never on the values bound by a particular request.
"""

import re
from typing import List, Mapping, Optional

# Starlette/FastAPI: {name} or {name:convertor}
_BRACE_RE = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)(?::[^}]*)?\}")
# Flask/Werkzeug: <name> or <convertor:name> or <convertor(args):name>
_ANGLE_RE = re.compile(r"<(?:[A-Za-z_][A-Za-z0-9_]*(?:\([^)]*\))?:)?([A-Za-z_][A-Za-z0-9_]*)>")
# Express style: /:name
_COLON_RE = re.compile(r"(?<=/):([A-Za-z_][A-Za-z0-9_]*)(?:\([^)]*\))?\??")

_PLACEHOLDER_RE = re.compile(r"\{([^}]+)\}")


def join_paths(*parts: str) -> str:
    """Join path segments with exactly one slash between them."""
    segments = []
    for part in parts:
        if not part:
            continue
        segments.extend(segment for segment in part.split("/") if segment)
    return "/" + "/".join(segments)


def normalize(
    mount_path: Optional[str],
    route_pattern: str,
    bound_params: Optional[Mapping[str, object]] = None,
) -> str:
    """
    Build the stable template for a route.

    Args:
        mount_path: Path the route's router is mounted at ("" for the root app)
        route_pattern: The framework-native route pattern
        bound_params: Values bound by the current request; unused, the
            template never depends on them

    Returns:
        The template, e.g. "/api/v1/success/{param}/router"
    """
    template = join_paths(mount_path or "", route_pattern or "")
    template = _BRACE_RE.sub(r"{\1}", template)
    template = _ANGLE_RE.sub(r"{\1}", template)
    template = _COLON_RE.sub(r"{\1}", template)
    return template


def path_parameter_names(template: str) -> List[str]:
    """List placeholder names of a template in order of appearance."""
    names = []
    for name in _PLACEHOLDER_RE.findall(template):
        if name not in names:
            names.append(name)
    return names
