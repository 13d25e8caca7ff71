"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of specwatch, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Deterministic merging of schema fragments and parameters.

Repeated observations of the same field are folded together with a
first-observed-wins policy: object schemas only ever gain properties, the
first recorded type and example of a field are kept, and later observations
only fill in what is still missing.
"""

import copy
from typing import Optional

from specwatch.core.logging import get_logger
from specwatch.domain.models import Parameter, SchemaFragment

logger = get_logger("specwatch.merger")


def merge(
    existing: Optional[SchemaFragment], incoming: Optional[SchemaFragment]
) -> Optional[SchemaFragment]:
    """
    Merge two schema fragments describing the same field.

    Neither argument is modified; the result is a new fragment.

    Args:
        existing: The canonical fragment recorded so far, if any
        incoming: The fragment inferred from the latest observation

    Returns:
        The merged fragment
    """
    if not existing:
        if incoming is None:
            return copy.deepcopy(existing)
        return copy.deepcopy(incoming)
    if not incoming:
        return copy.deepcopy(existing)

    existing_type = existing.get("type")
    incoming_type = incoming.get("type")

    if existing_type != incoming_type:
        logger.debug(
            f"Ignoring conflicting observation: type '{incoming_type}' for a field "
            f"first seen as '{existing_type}'"
        )
        return copy.deepcopy(existing)

    merged = copy.deepcopy(existing)

    if existing_type == "object":
        properties = merged.setdefault("properties", {})
        for key, fragment in incoming.get("properties", {}).items():
            properties[key] = merge(properties.get(key), fragment)
    elif existing_type == "array":
        merged["items"] = merge(existing.get("items"), incoming.get("items")) or {}

    if "example" not in merged and "example" in incoming:
        merged["example"] = copy.deepcopy(incoming["example"])

    return merged


def merge_parameter(existing: Optional[Parameter], incoming: Parameter) -> Parameter:
    """
    Merge a newly observed parameter into the recorded one with the same (name, in).

    Args:
        existing: The recorded parameter, if any
        incoming: The parameter built from the latest request

    Returns:
        A new Parameter; the arguments are left untouched
    """
    if existing is None:
        return incoming.model_copy(deep=True)

    merged = existing.model_copy(deep=True)
    merged.required = existing.required or incoming.required

    if merged.in_ == "body" or incoming.schema_ is not None:
        merged.schema_ = merge(existing.schema_, incoming.schema_)
        return merged

    if merged.type is None:
        merged.type = incoming.type
        merged.example = incoming.example
    elif merged.type == incoming.type and merged.example is None:
        merged.example = incoming.example

    return merged
