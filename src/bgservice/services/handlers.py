# src/bgservice/services/handlers.py

from __future__ import annotations

import importlib
import logging
from collections.abc import Callable

from ..core.errors import HandlerResolutionError
from ..core.ports import ServiceHandler

logger = logging.getLogger(__name__)


class FunctionHandler:
    """Adapts a plain zero-argument callable to the ServiceHandler interface."""

    def __init__(self, func: Callable[[], object]) -> None:
        self._func = func

    def execute(self) -> None:
        self._func()

    def __repr__(self) -> str:
        name = getattr(self._func, "__qualname__", repr(self._func))
        return f"FunctionHandler({name})"


class HandlerRegistry:
    """
    Maps handler keys (the `function` column) to service handlers.

    A descriptor may also name a module in its `require_once` column. That
    module is imported before lookup, and if it defines
    `register_handlers(registry)` it is called once so the module can add
    its own handlers.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, ServiceHandler] = {}
        self._loaded_modules: set[str] = set()

    def register(self, key: str, handler: ServiceHandler | Callable[[], object]) -> None:
        key = key.strip()
        if not key:
            raise ValueError("handler key is required")
        if not hasattr(handler, "execute"):
            if not callable(handler):
                raise TypeError(f"handler for {key!r} is neither a ServiceHandler nor callable")
            handler = FunctionHandler(handler)
        if key in self._handlers:
            logger.debug("Handler %s replaced", key)
        self._handlers[key] = handler  # type: ignore[assignment]

    def __contains__(self, key: object) -> bool:
        return key in self._handlers

    def keys(self) -> list[str]:
        return sorted(self._handlers)

    def _require(self, handler_ref: str, module_name: str) -> None:
        if module_name in self._loaded_modules:
            return
        try:
            module = importlib.import_module(module_name)
        except Exception as e:
            raise HandlerResolutionError(handler_ref, f"cannot import {module_name!r}: {e}") from e

        hook = getattr(module, "register_handlers", None)
        if callable(hook):
            try:
                hook(self)
            except Exception as e:
                raise HandlerResolutionError(
                    handler_ref, f"{module_name}.register_handlers failed: {e}"
                ) from e
        self._loaded_modules.add(module_name)
        logger.debug("Loaded handler module %s", module_name)

    def resolve(self, handler_ref: str, require_ref: str | None = None) -> ServiceHandler:
        """Return the handler for `handler_ref`, importing `require_ref` first when given."""
        if require_ref:
            self._require(handler_ref, require_ref)

        handler = self._handlers.get(handler_ref)
        if handler is None:
            raise HandlerResolutionError(handler_ref, "no handler registered under this key")
        return handler
