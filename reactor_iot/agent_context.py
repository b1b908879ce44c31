"""Per-agent bookkeeping of reported temperatures."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable


@dataclass(slots=True)
class AgentContext:
    """State owned by a single telemetry agent instance.

    The readings history only grows. Memory constrained devices should hand
    this bookkeeping to an external store instead.
    """

    temperature_readings: Dict[str, Dict[datetime, float]] = field(
        default_factory=dict
    )
    current_temperature: Dict[str, float] = field(default_factory=dict)
    max_temperature: Dict[str, float] = field(default_factory=dict)

    @classmethod
    def for_components(cls, components: Iterable[str]) -> "AgentContext":
        context = cls()
        for component in components:
            context.max_temperature[component] = 0.0
        return context

    def record_temperature(
        self, component: str, value: float, timestamp: datetime
    ) -> None:
        readings = self.temperature_readings.setdefault(component, {})
        # First reading wins when two samples share a timestamp.
        readings.setdefault(timestamp, value)
        self.current_temperature[component] = value
        previous_max = self.max_temperature.get(component)
        if previous_max is None or value > previous_max:
            self.max_temperature[component] = value

    def reading_count(self, component: str) -> int:
        return len(self.temperature_readings.get(component, {}))
