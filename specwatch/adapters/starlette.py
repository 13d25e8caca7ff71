"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of specwatch, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Starlette / FastAPI host adapter.

SpecwatchMiddleware is plain ASGI middleware wrapped around the whole
application, error handling included. It copies the request body (reading
JSON and form bodies ahead of the application, replaying them unchanged) and
the response as it is sent. Once the last response chunk has been handed to
the server, the route is resolved against the application's live route tree
and the pair is passed to the hooks on a worker thread.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple
from urllib.parse import parse_qsl

from starlette.routing import BaseRoute, Match, Mount

from specwatch.core.logging import get_logger
from specwatch.inference import FORM_MEDIA_TYPE, is_json_media_type
from specwatch.interceptor import RequestHooks, RequestRecord, ResponseRecord
from specwatch.templating import join_paths, normalize

logger = get_logger("specwatch.adapters.starlette")

# Added automatically alongside GET by Starlette
IMPLICIT_METHODS = {"HEAD"}


@dataclass
class RouteMatch:
    mount_path: str
    pattern: str
    path_params: Dict[str, Any] = field(default_factory=dict)


def _documented(route) -> bool:
    original = getattr(route, "original_route", route)
    return getattr(route, "include_in_schema", True) and getattr(original, "include_in_schema", True)


def effective_routes(routes: Sequence[BaseRoute]) -> Iterator[Any]:
    """
    Yield the routes a router actually dispatches to.

    FastAPI versions that include routers lazily keep the included router as a
    single entry; it is expanded into its route contexts, which carry the
    prefixed path, the methods and a matches() of their own.
    """
    for route in routes:
        contexts = getattr(route, "effective_route_contexts", None)
        if contexts is None:
            yield route
            continue
        for context in contexts():
            yield context.starlette_route or context


def resolve_route(routes: Sequence[BaseRoute], path: str, method: str) -> Optional[RouteMatch]:
    """
    Find the route that serves a request, descending into mounts.

    Args:
        routes: The application's top-level routes
        path: Request path relative to the application root
        method: HTTP method of the request

    Returns:
        The mount path, route pattern and bound parameters, or None when no
        documented route fully matches
    """
    scope = {"type": "http", "path": path, "root_path": "", "method": method.upper(), "path_params": {}}
    return _resolve(routes, scope, "")


def _resolve(routes: Sequence[BaseRoute], scope: Dict[str, Any], prefix: str) -> Optional[RouteMatch]:
    for route in effective_routes(routes):
        match, child_scope = route.matches(scope)
        if match is Match.NONE:
            continue
        if isinstance(route, Mount):
            nested = {**scope, **child_scope}
            nested["path_params"] = {**scope.get("path_params", {}), **child_scope.get("path_params", {})}
            found = _resolve(route.routes, nested, join_paths(prefix, route.path))
            if found is not None:
                return found
            continue
        if match is Match.FULL:
            if not _documented(route):
                return None
            return RouteMatch(
                mount_path=prefix,
                pattern=route.path,
                path_params={**scope.get("path_params", {}), **child_scope.get("path_params", {})},
            )
    return None


def discover_routes(routes: Sequence[BaseRoute], prefix: str = "") -> Iterator[Tuple[str, List[str]]]:
    """Yield (template, methods) for every documented HTTP route, mounts and included routers too."""
    for route in effective_routes(routes):
        if isinstance(route, Mount):
            yield from discover_routes(route.routes, join_paths(prefix, route.path))
            continue
        methods = getattr(route, "methods", None)
        if not methods or not _documented(route):
            continue
        explicit = sorted(method for method in methods if method not in IMPLICIT_METHODS) or sorted(methods)
        yield normalize(prefix, route.path), explicit


def _decode_headers(raw_headers) -> Dict[str, str]:
    headers: Dict[str, str] = {}
    for name, value in raw_headers or []:
        headers[name.decode("latin-1").lower()] = value.decode("latin-1")
    return headers


def _reads_ahead(record: RequestRecord) -> bool:
    return is_json_media_type(record.content_type) or record.content_type == FORM_MEDIA_TYPE


class SpecwatchMiddleware:
    """
    ASGI middleware that feeds request/response pairs to RequestHooks.

    Args:
        app: The wrapped ASGI application
        hooks: Receiver of the observations
        routes: Callable returning the application's current routes
        max_body_bytes: Bodies larger than this are not captured
    """

    def __init__(
        self,
        app,
        hooks: RequestHooks,
        routes: Callable[[], Sequence[BaseRoute]],
        max_body_bytes: int = 1024 * 1024,
    ):
        self.app = app
        self.hooks = hooks
        self.routes = routes
        self.max_body_bytes = max_body_bytes

    def _request_record(self, scope) -> RequestRecord:
        headers = _decode_headers(scope.get("headers"))
        path = scope.get("path", "/")
        root_path = scope.get("root_path", "")
        if root_path and path.startswith(root_path):
            path = path[len(root_path):] or "/"

        host = headers.get("host")
        if host is None and scope.get("server"):
            server_host, server_port = scope["server"]
            host = f"{server_host}:{server_port}" if server_port else server_host

        return RequestRecord(
            method=scope.get("method", "GET").upper(),
            path=path,
            query=parse_qsl(scope.get("query_string", b"").decode("latin-1"), keep_blank_values=True),
            headers=headers,
            scheme=scope.get("scheme", "http"),
            host=host,
        )

    async def _read_ahead(self, receive, request_body: "_BodyBuffer") -> List[Dict[str, Any]]:
        """Read request messages until the body ends or outgrows the capture limit."""
        messages = []
        while True:
            message = await receive()
            messages.append(message)
            if message["type"] != "http.request":
                break
            request_body.append(message.get("body", b""))
            if request_body.overflow or not message.get("more_body", False):
                break
        return messages

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        try:
            record = self._request_record(scope)
            self.hooks.on_request_start(record)
        except Exception:
            logger.exception("Failed to start observing request")
            await self.app(scope, receive, send)
            return

        request_body = _BodyBuffer(self.max_body_bytes)
        response_body = _BodyBuffer(self.max_body_bytes)
        response: Dict[str, Any] = {"status": None, "headers": {}, "finished": False}

        pending = await self._read_ahead(receive, request_body) if _reads_ahead(record) else []

        async def receive_wrapper():
            if pending:
                return pending.pop(0)
            message = await receive()
            if message["type"] == "http.request":
                request_body.append(message.get("body", b""))
            return message

        async def send_wrapper(message):
            if message["type"] == "http.response.start":
                response["status"] = message["status"]
                response["headers"] = _decode_headers(message.get("headers"))
            elif message["type"] == "http.response.body":
                response_body.append(message.get("body", b""))

            await send(message)

            if (
                message["type"] == "http.response.body"
                and not message.get("more_body", False)
                and not response["finished"]
            ):
                response["finished"] = True
                await asyncio.to_thread(self._finish, record, request_body, response, response_body)

        try:
            await self.app(scope, receive_wrapper, send_wrapper)
        except Exception:
            if response["status"] is None:
                # Nothing was sent, the server answers with a bare 500
                response["finished"] = True
                response["status"] = 500
                await asyncio.to_thread(self._finish, record, request_body, response, _BodyBuffer(0))
            raise

    def _finish(self, record: RequestRecord, request_body, response, response_body) -> None:
        try:
            match = resolve_route(self.routes(), record.path, record.method)
            if match is not None:
                record.mount_path = match.mount_path
                record.route_pattern = match.pattern
                record.path_params = match.path_params
            record.body = request_body.value()
            self.hooks.on_request_end(
                record,
                ResponseRecord(
                    status=response["status"] or 500,
                    headers=response["headers"],
                    body=response_body.value(),
                ),
            )
        except Exception:
            logger.exception(f"Failed to observe {record.method} {record.path}")


class _BodyBuffer:
    """Accumulates body chunks until they exceed a size limit."""

    def __init__(self, limit: int):
        self.limit = limit
        self.chunks = bytearray()
        self.overflow = False

    def append(self, chunk: bytes) -> None:
        if self.overflow or not chunk:
            return
        if len(self.chunks) + len(chunk) > self.limit:
            self.overflow = True
            self.chunks = bytearray()
            return
        self.chunks.extend(chunk)

    def value(self) -> Optional[bytes]:
        if self.overflow or not self.chunks:
            return None
        return bytes(self.chunks)


def attach(app, hooks: RequestHooks, max_body_bytes: int = 1024 * 1024) -> bool:
    """
    Wrap a Starlette or FastAPI application's middleware stack in SpecwatchMiddleware.

    The observer sits outside the server error middleware, so responses made
    by catch-all exception handlers are observed like any other.

    Returns:
        False if the object exposes no usable hook points or has already
        started serving; nothing is raised
    """
    build_middleware_stack = getattr(app, "build_middleware_stack", None)
    if build_middleware_stack is None or not hasattr(app, "routes"):
        logger.warning(f"{type(app).__name__} exposes no middleware hook, the document will stay empty")
        return False
    if getattr(app, "middleware_stack", None) is not None:
        logger.warning("Could not install traffic observer: the application has already started")
        return False

    def build_observed_stack():
        return SpecwatchMiddleware(
            build_middleware_stack(),
            hooks=hooks,
            routes=lambda: app.routes,
            max_body_bytes=max_body_bytes,
        )

    app.build_middleware_stack = build_observed_stack
    return True


def add_spec_route(app, path: str, endpoint) -> bool:
    """Mount the read-only document endpoint; it is never documented itself."""
    if not hasattr(app, "add_route"):
        return False
    app.add_route(path, endpoint, methods=["GET"], include_in_schema=False)
    return True
