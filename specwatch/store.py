"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of specwatch, licensed under the MIT License.
See LICENSE file for details.
"""

"""
The mutable Swagger document of one observed server.

Merges into one (template, method) operation are serialised by a lock owned
by that operation; they are computed on a copy and published by swapping the
operation in, so operations under different keys are updated independently
and readers never see a half-merged operation.
"""

import copy
import threading
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from specwatch.core.logging import get_logger
from specwatch.domain.models import Info, Operation, Parameter, Response, SchemaFragment, SpecDocument
from specwatch.merger import merge, merge_parameter
from specwatch.negotiation import accumulate
from specwatch.security import SecurityDetection
from specwatch.templating import path_parameter_names

logger = get_logger("specwatch.store")

PatchFunction = Callable[[Dict[str, Any]], Any]


@dataclass
class OperationObservation:
    """Everything one completed request contributes to its operation."""

    status: str
    parameters: List[Parameter] = field(default_factory=list)
    response_schema: Optional[SchemaFragment] = None
    consumes: List[str] = field(default_factory=list)
    produces: List[str] = field(default_factory=list)
    security: SecurityDetection = field(default_factory=SecurityDetection)


def _status_description(status: str) -> str:
    try:
        return HTTPStatus(int(status)).phrase
    except ValueError:
        return ""


class SpecStore:
    """Owns the document and every operation that changes it."""

    def __init__(self, info: Optional[Info] = None, base_path: Optional[str] = None):
        self._document = SpecDocument(info=info or Info(), basePath=base_path)
        self._lock = threading.RLock()
        self._operation_locks: Dict[Tuple[str, str], threading.Lock] = {}
        self._observed: set = set()
        self.revision = 0

    def _touch(self) -> None:
        self.revision += 1

    def _operation_lock(self, key: Tuple[str, str]) -> threading.Lock:
        with self._lock:
            return self._operation_locks.setdefault(key, threading.Lock())

    def register_route(self, template: str, methods: Iterable[str]) -> bool:
        """
        Add skeleton operations for a route that has not been requested yet.

        Args:
            template: The route template
            methods: HTTP methods the route accepts

        Returns:
            True if the document changed
        """
        changed = False
        with self._lock:
            path_item = self._document.paths.get(template)
            if path_item is None:
                path_item = self._document.paths[template] = {}
                changed = True
            for method in methods:
                method = method.lower()
                if method in path_item:
                    continue
                path_item[method] = Operation(
                    parameters=[
                        Parameter(name=name, in_="path", required=True)
                        for name in path_parameter_names(template)
                    ]
                )
                changed = True
            if changed:
                self._touch()
        return changed

    def get_or_create_operation(self, template: str, method: str, literal_path: Optional[str] = None) -> Operation:
        """
        Get the operation for (template, method), creating it on first sight.

        The summary is the literal path of the first request observed for the
        operation.
        """
        method = method.lower()
        key = (template, method)
        with self._lock:
            path_item = self._document.paths.setdefault(template, {})
            operation = path_item.get(method)
            if operation is None:
                operation = path_item[method] = Operation()
                self._touch()
            if key not in self._observed and literal_path is not None:
                self._observed.add(key)
                if operation.summary is None:
                    operation.summary = literal_path
                    self._touch()
            return operation

    def record(self, template: str, method: str, literal_path: str, observation: OperationObservation) -> Operation:
        """
        Fold one observation into the operation for (template, method).

        Args:
            template: The route template
            method: HTTP method of the request
            literal_path: The concrete request path
            observation: What the request/response pair showed

        Returns:
            The operation as published after the merge
        """
        method = method.lower()
        with self._operation_lock((template, method)):
            current = self.get_or_create_operation(template, method, literal_path)
            updated = current.model_copy(deep=True)

            for parameter in observation.parameters:
                self.record_parameter(updated, parameter)
            self.record_response(updated, observation.status, observation.response_schema)

            updated.consumes = accumulate(updated.consumes, observation.consumes)
            updated.produces = accumulate(updated.produces, observation.produces)

            known = updated.security_names()
            for name in observation.security.schemes:
                if name not in known:
                    known.append(name)
                    updated.security = (updated.security or []) + [{name: []}]

            with self._lock:
                # Another request may have defined the scheme since detection ran
                for name, scheme in observation.security.definitions().items():
                    self._document.securityDefinitions.setdefault(name, scheme)
                self._document.paths[template][method] = updated
                self._touch()

        logger.debug(
            f"Recorded {method.upper()} {template} -> {observation.status}",
            context={"path": literal_path},
        )
        return updated

    @staticmethod
    def record_parameter(operation: Operation, parameter: Parameter) -> None:
        """Merge a parameter into an operation, keeping (name, in) unique."""
        for index, existing in enumerate(operation.parameters):
            if existing.key == parameter.key:
                operation.parameters[index] = merge_parameter(existing, parameter)
                return
        operation.parameters.append(merge_parameter(None, parameter))

    @staticmethod
    def record_response(operation: Operation, status: str, schema: Optional[SchemaFragment]) -> None:
        """Merge a response schema into the operation's entry for a status code."""
        existing = operation.responses.get(status)
        if existing is None:
            operation.responses[status] = Response(
                description=_status_description(status),
                schema=merge(None, schema),
            )
            return
        operation.responses[status] = Response(
            description=existing.description,
            schema=merge(existing.schema_, schema),
        )

    def record_host(self, host: Optional[str], scheme: Optional[str]) -> None:
        """Track the host and scheme of the most recent request."""
        with self._lock:
            changed = False
            if host and host != self._document.host:
                self._document.host = host
                changed = True
            if scheme and self._document.schemes != [scheme]:
                self._document.schemes = [scheme]
                changed = True
            if changed:
                self._touch()

    def snapshot(self) -> Dict[str, Any]:
        """Return a JSON-serialisable deep copy of the document."""
        with self._lock:
            return copy.deepcopy(self._document.to_dict())

    def security_scheme_names(self) -> List[str]:
        """Names of the security schemes defined so far."""
        with self._lock:
            return list(self._document.securityDefinitions)


def apply_patch(document: Dict[str, Any], patch_fn: Optional[PatchFunction]) -> Dict[str, Any]:
    """
    Apply a caller-supplied transform to a copy of the document.

    Args:
        document: A document snapshot; it is not modified
        patch_fn: The transform, or None

    Returns:
        The transformed document

    Raises:
        TypeError: If the transform does not return a mapping
        Exception: Whatever the transform itself raises
    """
    if patch_fn is None:
        return document
    patched = patch_fn(copy.deepcopy(document))
    if not isinstance(patched, dict):
        raise TypeError(f"Patch function returned {type(patched).__name__}, expected a dict")
    return patched
