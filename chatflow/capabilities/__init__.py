"""
ChatFlow Capabilities - the plugin functions workflow steps invoke

Usage:
    from chatflow.capabilities import CapabilityRegistry

    registry = CapabilityRegistry()

    @registry.capability("CalendarPlugin", "FindNextAvailableSlot")
    async def find_slot(duration_minutes: int = 30) -> str:
        ...
"""

from .models import Capability, capability_key
from .registry import CapabilityNotFound, CapabilityRegistry

__all__ = [
    "Capability",
    "capability_key",
    "CapabilityNotFound",
    "CapabilityRegistry",
]
