"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of specwatch, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Entry points: attach a generator to a server and read its document.

A SpecGenerator owns the document of one server. The module-level init,
get_spec and set_package_info_path functions are a convenience over the
generator created by the most recent module-level init call.
"""

import copy
import threading
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Dict, Optional, Union

from starlette.requests import Request
from starlette.responses import JSONResponse

from specwatch.adapters.starlette import add_spec_route, attach, discover_routes
from specwatch.core.config import GeneratorConfig
from specwatch.core.logging import ErrorTracker, get_logger
from specwatch.domain.models import Info
from specwatch.interceptor import Interceptor
from specwatch.store import PatchFunction, SpecStore, apply_patch
from specwatch.utils.package_info import load_package_info

logger = get_logger("specwatch.generator")

PatchOrConfig = Union[PatchFunction, Mapping, GeneratorConfig, None]


class SpecGenerator:
    """
    Builds the document of one observed server.

    Args:
        config: Generator settings; read from SPECWATCH_* environment
            variables when omitted
    """

    def __init__(self, config: Optional[GeneratorConfig] = None):
        self.config = config or GeneratorConfig.from_env()
        self.package_info_path: Optional[str] = self.config.package_info_path
        self.store: Optional[SpecStore] = None
        self.interceptor: Optional[Interceptor] = None
        self.app = None
        self.attached = False
        self.patch_fn: Optional[PatchFunction] = None
        self.patch_errors = ErrorTracker(logger)
        self._cache_lock = threading.Lock()
        self._cached_revision: Optional[int] = None
        self._cached_spec: Optional[Dict[str, Any]] = None

    def set_package_info_path(self, path: Union[str, Path]) -> None:
        """Use another project metadata source on the next init."""
        self.package_info_path = str(path)

    def init(self, app, patch_or_config: PatchOrConfig = None) -> "SpecGenerator":
        """
        Start observing a server.

        Args:
            app: A Starlette or FastAPI application
            patch_or_config: A callable transforming the document before it is
                read, or configuration (a GeneratorConfig or a mapping of its
                fields)

        Returns:
            The generator itself
        """
        self.patch_fn = None
        if callable(patch_or_config) and not isinstance(patch_or_config, (Mapping, GeneratorConfig)):
            self.patch_fn = patch_or_config
        elif isinstance(patch_or_config, GeneratorConfig):
            self.config = patch_or_config
        elif isinstance(patch_or_config, Mapping):
            self.config = GeneratorConfig.from_mapping({**self.config.model_dump(), **patch_or_config})
        if self.config.package_info_path and self.package_info_path is None:
            self.package_info_path = self.config.package_info_path

        package_info = load_package_info(self.package_info_path)
        self.store = SpecStore(
            info=Info(
                title=package_info.title,
                description=package_info.info_description(),
                version=package_info.version,
            ),
            base_path=self.config.base_path,
        )
        self.interceptor = Interceptor(
            self.store,
            header_parameters=self.config.header_parameters,
            ignore_paths=self.config.ignore_paths + [self.config.spec_path],
        )
        self._cached_revision = None
        self._cached_spec = None

        self.app = app
        self.attached = attach(app, self.interceptor, max_body_bytes=self.config.max_body_bytes)
        if self.attached:
            add_spec_route(app, self.config.spec_path, self.spec_endpoint)
            state = getattr(app, "state", None)
            if state is not None:
                state.specwatch = self

        logger.info(
            f"Observing traffic for '{package_info.title}' {package_info.version}",
            context={"spec_path": self.config.spec_path, "attached": self.attached},
        )
        return self

    def sync_routes(self) -> None:
        """Register routes the application declares but nobody has requested yet."""
        if not self.attached or self.store is None:
            return
        try:
            for template, methods in discover_routes(self.app.routes):
                self.store.register_route(template, methods)
        except Exception as e:
            logger.warning(f"Route discovery failed: {e}")

    def get_spec(self) -> Dict[str, Any]:
        """
        Return the current document, patched if a patch function was given.

        The patch runs once per document revision on a copy of the document;
        reads of an unchanged document return the cached result. If the patch
        fails, the unpatched document is returned and the failure is tracked
        in patch_errors.
        """
        if self.store is None:
            return SpecStore().snapshot()

        self.sync_routes()

        with self._cache_lock:
            revision = self.store.revision
            if self._cached_spec is not None and self._cached_revision == revision:
                return copy.deepcopy(self._cached_spec)

            document = self.store.snapshot()
            try:
                result = apply_patch(document, self.patch_fn)
            except Exception as e:
                self.patch_errors.add_error(e, context={"revision": revision})
                result = document

            self._cached_revision = revision
            self._cached_spec = result
            return copy.deepcopy(result)

    async def spec_endpoint(self, request: Request) -> JSONResponse:
        return JSONResponse(self.get_spec())


_current: Optional[SpecGenerator] = None
_package_info_path: Optional[str] = None


def _generator() -> SpecGenerator:
    global _current
    if _current is None:
        _current = SpecGenerator()
    return _current


def init(app, patch_or_config: PatchOrConfig = None) -> SpecGenerator:
    """Attach a new generator to a server and make it the current one."""
    global _current
    generator = SpecGenerator()
    if _package_info_path is not None:
        generator.set_package_info_path(_package_info_path)
    _current = generator.init(app, patch_or_config)
    return _current


def get_spec() -> Dict[str, Any]:
    """Document of the current generator."""
    return _generator().get_spec()


def set_package_info_path(path: Union[str, Path]) -> None:
    """Override the project metadata source used by the next init."""
    global _package_info_path
    _package_info_path = str(path)

