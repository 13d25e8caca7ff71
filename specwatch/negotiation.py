"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of specwatch, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Content negotiation metadata derived from Content-Type headers.
"""

from typing import Dict, Iterable, List, Mapping, Optional


def base_media_type(content_type: Optional[str]) -> Optional[str]:
    """Strip parameters such as charset from a Content-Type value."""
    if not content_type:
        return None
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type or None


def _content_type(headers: Optional[Mapping[str, str]]) -> Optional[str]:
    if not headers:
        return None
    for name, value in headers.items():
        if name.lower() == "content-type":
            return value
    return None


def negotiate(
    request_headers: Optional[Mapping[str, str]],
    response_headers: Optional[Mapping[str, str]],
    has_body: bool = False,
) -> Dict[str, List[str]]:
    """
    Derive consumes/produces for a single request/response pair.

    Args:
        request_headers: Headers of the request
        response_headers: Headers of the response
        has_body: Whether the operation carries a body parameter

    Returns:
        A dict with "consumes" and/or "produces" when they could be determined
    """
    result: Dict[str, List[str]] = {}

    if has_body:
        consumed = base_media_type(_content_type(request_headers))
        if consumed:
            result["consumes"] = [consumed]

    produced = base_media_type(_content_type(response_headers))
    if produced:
        result["produces"] = [produced]

    return result


def accumulate(existing: Optional[Iterable[str]], incoming: Optional[Iterable[str]]) -> Optional[List[str]]:
    """Ordered, duplicate-free union of two media type lists."""
    merged = list(existing or [])
    for media_type in incoming or []:
        if media_type not in merged:
            merged.append(media_type)
    return merged or None
