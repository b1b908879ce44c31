"""Domain models for telemetry, commands and relayed hub messages."""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from typing import Any, Dict, Optional


class MalformedPayload(ValueError):
    """Raised when a command request payload cannot be interpreted."""


class MalformedMessage(ValueError):
    """Raised when an inbound hub message cannot be decoded."""


class CommandStatus(IntEnum):
    COMPLETED = 200
    IN_PROGRESS = 202
    BAD_REQUEST = 400
    NOT_FOUND = 404


@dataclass(frozen=True, slots=True)
class TelemetrySample:
    """A single metric value sent device-to-cloud.

    ``component_name`` is ``None`` for telemetry defined on the root
    interface of the device model.
    """

    component_name: Optional[str]
    metric_name: str
    value: float
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def as_payload(self) -> Dict[str, Any]:
        return {self.metric_name: self.value}


@dataclass(slots=True)
class CommandRequest:
    request_id: str
    name: str
    payload: Any = None


@dataclass(slots=True)
class CommandResponse:
    status: CommandStatus
    payload: Optional[bytes] = None

    @classmethod
    def json(cls, status: CommandStatus, body: Any) -> "CommandResponse":
        return cls(status=status, payload=json.dumps(body).encode("utf-8"))

    def decoded(self) -> Any:
        if self.payload is None:
            return None
        return json.loads(self.payload.decode("utf-8"))


@dataclass(frozen=True, slots=True)
class RelayMessage:
    temperature: float

    @classmethod
    def from_bytes(cls, body: bytes) -> "RelayMessage":
        try:
            data = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise MalformedMessage(f"payload is not UTF-8 JSON: {exc}") from exc

        if not isinstance(data, dict):
            raise MalformedMessage("payload is not a JSON object")

        value = data.get("temperature")
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise MalformedMessage("payload has no numeric 'temperature' field")
        try:
            temperature = float(value)
        except OverflowError as exc:
            raise MalformedMessage("temperature is out of range") from exc
        if not math.isfinite(temperature):
            raise MalformedMessage(f"temperature {value!r} is not a finite number")

        return cls(temperature=temperature)

    def rounded(self) -> int:
        """Round half to even, so 22.5 becomes 22 and 23.5 becomes 24."""
        return round(self.temperature)
