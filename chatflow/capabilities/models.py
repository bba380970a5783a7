"""
ChatFlow Capability Models - Data structures for invocable plugin functions
"""

import inspect
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List


@dataclass
class Capability:
    """
    A named function a workflow step can invoke.

    Attributes:
        plugin_name: Owning plugin, e.g. "MailPlugin"
        function_name: Function within the plugin, e.g. "SendEmail"
        func: Sync or async callable taking keyword arguments
        description: Human-readable summary
        parameters: Parameter names accepted by ``func``
        accepts_any: True when ``func`` takes ``**kwargs``
    """
    plugin_name: str
    function_name: str
    func: Callable[..., Any]
    description: str = ""
    parameters: List[str] = field(default_factory=list)
    accepts_any: bool = False

    @property
    def key(self) -> str:
        return capability_key(self.plugin_name, self.function_name)

    @property
    def qualified_name(self) -> str:
        return f"{self.plugin_name}.{self.function_name}"

    @classmethod
    def from_callable(
        cls,
        plugin_name: str,
        function_name: str,
        func: Callable[..., Any],
        description: str = "",
    ) -> "Capability":
        """Build a Capability, reading parameter names from the signature"""
        parameters: List[str] = []
        accepts_any = False
        for param in inspect.signature(func).parameters.values():
            if param.kind == inspect.Parameter.VAR_KEYWORD:
                accepts_any = True
            elif param.kind in (
                inspect.Parameter.POSITIONAL_OR_KEYWORD,
                inspect.Parameter.KEYWORD_ONLY,
            ):
                parameters.append(param.name)

        return cls(
            plugin_name=plugin_name,
            function_name=function_name,
            func=func,
            description=description or (inspect.getdoc(func) or "").split("\n")[0],
            parameters=parameters,
            accepts_any=accepts_any,
        )

    def bind_arguments(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        """Keep only the arguments ``func`` declares (all of them for **kwargs)"""
        if self.accepts_any:
            return dict(arguments)
        return {k: v for k, v in arguments.items() if k in self.parameters}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "plugin_name": self.plugin_name,
            "function_name": self.function_name,
            "description": self.description,
            "parameters": list(self.parameters),
        }


def capability_key(plugin_name: str, function_name: str) -> str:
    """Lookup key; plugin and function names match case-insensitively"""
    return f"{plugin_name.lower()}.{function_name.lower()}"
