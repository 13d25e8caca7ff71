"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of specwatch, licensed under the MIT License.
See LICENSE file for details.
"""

"""
The observation pipeline behind every request/response pair.

Host adapters only need to call the two hooks of RequestHooks: one when a
request starts, one after its response has been delivered. The Interceptor
turns the pair into an observation and hands it to the store. Nothing that
happens here can reach the client: every failure is logged and tracked.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Tuple

from specwatch.core.logging import ErrorTracker, correlation_id, get_logger, new_correlation_id
from specwatch.domain.models import Parameter
from specwatch.inference import coerce_scalar, infer, parse_body
from specwatch.negotiation import base_media_type, negotiate
from specwatch.security import detect, is_security_header
from specwatch.store import OperationObservation, SpecStore
from specwatch.templating import normalize

logger = get_logger("specwatch.interceptor")


@dataclass
class RequestRecord:
    """What is known about a request when it starts."""

    method: str
    path: str
    route_pattern: Optional[str] = None
    mount_path: str = ""
    path_params: Dict[str, Any] = field(default_factory=dict)
    query: List[Tuple[str, str]] = field(default_factory=list)
    headers: Dict[str, str] = field(default_factory=dict)
    scheme: Optional[str] = None
    host: Optional[str] = None
    body: Optional[bytes] = None
    correlation_id: Optional[str] = None

    @property
    def content_type(self) -> Optional[str]:
        return base_media_type(self.headers.get("content-type"))


@dataclass
class ResponseRecord:
    """The finalized response of a request."""

    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[bytes] = None

    @property
    def content_type(self) -> Optional[str]:
        return base_media_type(self.headers.get("content-type"))


class RequestHooks(Protocol):
    """Capability interface a host adapter drives."""

    def on_request_start(self, request: RequestRecord) -> None: ...

    def on_request_end(self, request: RequestRecord, response: ResponseRecord) -> None: ...


class Interceptor:
    """
    Turns request/response pairs into document updates.

    Args:
        store: The document to update
        header_parameters: Lowercased request header names documented as header parameters
        ignore_paths: Literal paths that are never observed
    """

    def __init__(
        self,
        store: SpecStore,
        header_parameters: Optional[List[str]] = None,
        ignore_paths: Optional[List[str]] = None,
    ):
        self.store = store
        self.header_parameters = [name.lower() for name in header_parameters or []]
        self.ignore_paths = set(ignore_paths or [])
        self.errors = ErrorTracker(logger)
        self.observed_count = 0

    def on_request_start(self, request: RequestRecord) -> None:
        if request.correlation_id is None:
            request.correlation_id = new_correlation_id()
        logger.debug(f"Observing {request.method} {request.path}")

    def on_request_end(self, request: RequestRecord, response: ResponseRecord) -> None:
        """Record a completed request; failures are tracked, never raised."""
        with correlation_id(request.correlation_id):
            try:
                self.observe(request, response)
            except Exception as e:
                self.errors.add_error(
                    e,
                    context={"method": request.method, "path": request.path, "status": response.status},
                )

    def observe(self, request: RequestRecord, response: ResponseRecord) -> Optional[str]:
        """
        Run the pipeline for one request/response pair.

        Returns:
            The template the pair was recorded under, or None if it was skipped
        """
        if request.route_pattern is None:
            logger.debug(f"No route matched {request.method} {request.path}, skipping")
            return None
        if request.path in self.ignore_paths:
            return None

        template = normalize(request.mount_path, request.route_pattern, request.path_params)
        self.store.record_host(request.host, request.scheme)

        parameters = self.build_parameters(request)
        has_body = any(parameter.in_ == "body" for parameter in parameters)
        media = negotiate(request.headers, response.headers, has_body=has_body)
        security = detect(request.headers, known=self.store.security_scheme_names())

        present, payload = parse_body(response.body, response.content_type)
        observation = OperationObservation(
            status=str(response.status),
            parameters=parameters,
            response_schema=infer(payload) if present else None,
            consumes=media.get("consumes", []),
            produces=media.get("produces", []),
            security=security,
        )

        self.store.record(template, request.method, request.path, observation)
        self.observed_count += 1
        return template

    def build_parameters(self, request: RequestRecord) -> List[Parameter]:
        """Build path, query, header and body parameters for a request."""
        parameters: List[Parameter] = []

        for name, value in request.path_params.items():
            parameters.append(self._scalar_parameter(name, "path", value, required=True))

        grouped: Dict[str, List[str]] = {}
        for name, value in request.query:
            grouped.setdefault(name, []).append(value)
        for name, values in grouped.items():
            if len(values) == 1:
                parameters.append(self._scalar_parameter(name, "query", values[0], required=False))
                continue
            examples = [coerce_scalar(value) for value in values]
            items = infer(examples[0]) or {"type": "string"}
            parameters.append(
                Parameter(
                    name=name,
                    in_="query",
                    type="array",
                    items={"type": items["type"]},
                    collectionFormat="multi",
                    required=False,
                    example=examples,
                )
            )

        for name, value in request.headers.items():
            if name in self.header_parameters and not is_security_header(name):
                parameters.append(self._scalar_parameter(name, "header", value, required=False))

        present, payload = parse_body(request.body, request.content_type)
        if present:
            schema = infer(payload)
            if schema is not None:
                parameters.append(Parameter(name="body", in_="body", schema=schema, required=True))

        return parameters

    @staticmethod
    def _scalar_parameter(name: str, location: str, value: Any, required: bool) -> Parameter:
        fragment = infer(coerce_scalar(value)) or {"type": "string"}
        if fragment["type"] in ("object", "array"):
            fragment = {"type": "string", "example": str(value)}
        return Parameter(
            name=name,
            in_=location,
            type=fragment["type"],
            required=required,
            example=fragment.get("example"),
        )
