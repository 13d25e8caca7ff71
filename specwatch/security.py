"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of specwatch, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Convention-based detection of security headers.

Headers named Authorization or X-* are taken as apiKey schemes passed in a
header. Only header names are recorded, never their values.
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Mapping, Optional, Tuple, Union

from specwatch.domain.models import SecurityScheme

SECURITY_HEADER_PREFIXES = ("authorization", "x-")

HeaderItems = Union[Mapping[str, str], Iterable[Tuple[str, str]]]


@dataclass
class SecurityDetection:
    """Schemes used by one request, and which of them are new to the document."""

    schemes: List[str] = field(default_factory=list)
    new_schemes: List[str] = field(default_factory=list)

    def definitions(self) -> dict:
        return {name: SecurityScheme(name=name) for name in self.new_schemes}


def is_security_header(name: str) -> bool:
    return name.lower().startswith(SECURITY_HEADER_PREFIXES)


def _header_names(headers: HeaderItems) -> List[str]:
    if isinstance(headers, Mapping):
        return list(headers.keys())
    return [name for name, _ in headers]


def detect(headers: Optional[HeaderItems], known: Optional[Iterable[str]] = None) -> SecurityDetection:
    """
    Classify request headers into security schemes.

    Args:
        headers: Request headers as a mapping or a list of (name, value) pairs
        known: Scheme names already defined in the document

    Returns:
        The schemes of this request in header order, and the ones not yet known
    """
    detection = SecurityDetection()
    if not headers:
        return detection

    known_names = set(known or ())
    for header in _header_names(headers):
        if not is_security_header(header):
            continue
        name = header.lower()
        if name in detection.schemes:
            continue
        detection.schemes.append(name)
        if name not in known_names:
            detection.new_schemes.append(name)
    return detection
