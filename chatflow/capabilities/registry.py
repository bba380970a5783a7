"""
ChatFlow Capability Registry - Central registry of functions workflows can invoke
"""

import inspect
import logging
import threading
from typing import Any, Callable, Dict, List, Optional

from .models import Capability, capability_key

logger = logging.getLogger(__name__)


class CapabilityNotFound(LookupError):
    """Raised when a step references a plugin function nobody registered"""

    def __init__(self, plugin_name: str, function_name: str):
        self.plugin_name = plugin_name
        self.function_name = function_name
        super().__init__(
            f"Function '{function_name}' not found in plugin '{plugin_name}'"
        )


class CapabilityRegistry:
    """
    Registry of plugin functions, looked up by (plugin, function) name.

    Usage:
        registry = CapabilityRegistry()

        @registry.capability("MailPlugin", "SendEmail")
        async def send_email(to_email: str, subject: str, body: str = "") -> str:
            '''Send an email'''
            ...

        result = await registry.invoke("MailPlugin", "SendEmail", {"to_email": "a@b.c", "subject": "Hi"})
    """

    def __init__(self):
        self._capabilities: Dict[str, Capability] = {}
        self._lock = threading.Lock()

    def register(
        self,
        plugin_name: str,
        function_name: str,
        func: Callable[..., Any],
        description: str = "",
    ) -> Capability:
        """
        Register a function under ``plugin_name.function_name``.

        Re-registering the same name overwrites the previous entry.
        """
        capability = Capability.from_callable(plugin_name, function_name, func, description)
        with self._lock:
            if capability.key in self._capabilities:
                logger.warning(f"Capability '{capability.qualified_name}' already registered, overwriting")
            self._capabilities[capability.key] = capability
        logger.info(f"Registered capability: {capability.qualified_name}")
        return capability

    def capability(
        self,
        plugin_name: str,
        function_name: Optional[str] = None,
        description: str = "",
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator form of :meth:`register`. Returns the function unchanged."""
        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            self.register(plugin_name, function_name or func.__name__, func, description)
            return func
        return decorator

    def unregister(self, plugin_name: str, function_name: str) -> bool:
        with self._lock:
            removed = self._capabilities.pop(capability_key(plugin_name, function_name), None)
        if removed:
            logger.info(f"Unregistered capability: {removed.qualified_name}")
        return removed is not None

    def get(self, plugin_name: str, function_name: str) -> Optional[Capability]:
        with self._lock:
            return self._capabilities.get(capability_key(plugin_name, function_name))

    def has(self, plugin_name: str, function_name: str) -> bool:
        return self.get(plugin_name, function_name) is not None

    def list(self, plugin_name: Optional[str] = None) -> List[Capability]:
        with self._lock:
            capabilities = list(self._capabilities.values())
        if plugin_name:
            capabilities = [c for c in capabilities if c.plugin_name.lower() == plugin_name.lower()]
        return capabilities

    async def invoke(
        self,
        plugin_name: str,
        function_name: str,
        arguments: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Invoke a registered function with named arguments.

        Coroutine functions are awaited; plain functions are called directly.

        Raises:
            CapabilityNotFound: If no function is registered under that name.
        """
        capability = self.get(plugin_name, function_name)
        if capability is None:
            raise CapabilityNotFound(plugin_name, function_name)

        kwargs = capability.bind_arguments(arguments or {})
        logger.debug(f"Invoking {capability.qualified_name} with {sorted(kwargs)}")

        result = capability.func(**kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result

    def __len__(self) -> int:
        return len(self._capabilities)

    def __contains__(self, qualified_name: str) -> bool:
        plugin_name, _, function_name = qualified_name.partition(".")
        return self.has(plugin_name, function_name)

    def __repr__(self) -> str:
        return f"<CapabilityRegistry capabilities={len(self._capabilities)}>"
