"""Command handling for remote invocations received from the hub."""

from __future__ import annotations

import inspect
import json
import logging
from typing import Any, Dict, Optional

from .core import (
    CommandHandler,
    CommandRequest,
    CommandResponse,
    CommandStatus,
    MalformedPayload,
)

LOGGER = logging.getLogger(__name__)

TALK_TO_ME_COMMAND = "talktome"


def _parse_device_data(payload: Any) -> Dict[str, Any]:
    if isinstance(payload, (bytes, bytearray)):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedPayload(f"payload is not UTF-8: {exc}") from exc

    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise MalformedPayload(str(exc)) from exc

    if not isinstance(payload, dict):
        raise MalformedPayload("expected a JSON object")

    name = payload.get("name")
    if not isinstance(name, str):
        raise MalformedPayload("missing string field 'name'")

    return dict(payload)


def handle_talk_to_me(request: CommandRequest) -> CommandResponse:
    """Echo a greeting back to the caller.

    A malformed payload never raises; the caller receives ``BAD_REQUEST``
    with an empty payload instead.
    """

    LOGGER.debug("Command: Received - %s", request.name)

    try:
        device_data = _parse_device_data(request.payload)
    except MalformedPayload as exc:
        LOGGER.debug("Command input is invalid: %s.", exc)
        return CommandResponse(status=CommandStatus.BAD_REQUEST)

    device_data["name"] = f"Howdy from Pi to {device_data['name']} !!!"
    return CommandResponse.json(CommandStatus.COMPLETED, device_data)


class CommandRouter:
    """Dispatches method requests to the handler registered for their name."""

    def __init__(self) -> None:
        self._handlers: Dict[str, CommandHandler] = {}

    def register(self, name: str, handler: CommandHandler) -> None:
        self._handlers[name] = handler

    def unregister(self, name: str) -> None:
        self._handlers.pop(name, None)

    def handler_for(self, name: str) -> Optional[CommandHandler]:
        return self._handlers.get(name)

    @property
    def command_names(self) -> list[str]:
        return sorted(self._handlers)

    async def dispatch(self, request: CommandRequest) -> CommandResponse:
        handler = self._handlers.get(request.name)
        if handler is None:
            LOGGER.warning("Received unknown command '%s'", request.name)
            return CommandResponse(status=CommandStatus.NOT_FOUND)

        try:
            result = handler(request)
            if inspect.isawaitable(result):
                result = await result
        except MalformedPayload as exc:
            LOGGER.debug("Command '%s' rejected payload: %s", request.name, exc)
            return CommandResponse(status=CommandStatus.BAD_REQUEST)

        return result
