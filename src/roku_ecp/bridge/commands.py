"""
Commands accepted by the bridge

Inbound JSON is turned into a CommandRequest at the HTTP boundary; unknown or
malformed commands fail there with RokuValidationError. Execution goes
through a closed kind -> handler table.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, NamedTuple, Optional

from ..constants import KEY_COMMANDS, KEY_STATES, NON_KEY_COMMANDS
from ..exceptions import RokuValidationError

AppResolver = Callable[[str], str]


class CommandKind(str, Enum):
    KEY = "key"
    TEXT = "text"
    SEARCH = "search"
    LAUNCH = "launch"


class KeyPress(NamedTuple):
    name: str
    state: Optional[str] = None


class LaunchTarget(NamedTuple):
    requested: str  # name as sent by the caller
    app_key: str    # id or name after alias resolution


def _identity(key: str) -> str:
    return key


@dataclass(frozen=True)
class CommandRequest:
    kind: CommandKind
    payload: Any

    @classmethod
    def from_payload(cls, kind: CommandKind, body: Optional[Dict[str, Any]],
                     resolve_app: AppResolver = _identity) -> "CommandRequest":
        body = body if isinstance(body, dict) else {}

        if kind is CommandKind.KEY:
            name = str(body.get("key") or body.get("command") or "")
            if not name:
                raise RokuValidationError("Missing key")
            if name in NON_KEY_COMMANDS or name not in KEY_COMMANDS:
                raise RokuValidationError(f"Key not supported: {name}")
            state = body.get("state")
            if state is not None and state not in KEY_STATES:
                raise RokuValidationError(f"Invalid key state {state}")
            return cls(kind, KeyPress(name, state))

        if kind is CommandKind.TEXT:
            text = str(body.get("text") or "")
            if not text:
                raise RokuValidationError("Missing text")
            return cls(kind, text)

        if kind is CommandKind.SEARCH:
            return cls(kind, {str(key): str(value) for key, value in body.items() if value is not None})

        if kind is CommandKind.LAUNCH:
            requested = str(body.get("app") or "")
            if not requested:
                raise RokuValidationError("Missing app")
            return cls(kind, LaunchTarget(requested, resolve_app(requested)))

        raise RokuValidationError(f"Unsupported command {kind}")

    @property
    def detail(self) -> Dict[str, Any]:
        """Summary stored with the stats event"""
        if self.kind is CommandKind.KEY:
            return {"key": self.payload.name}
        if self.kind is CommandKind.TEXT:
            return {"text": self.payload}
        if self.kind is CommandKind.SEARCH:
            return {"params": self.payload}
        return {"app": self.payload.requested}

    async def execute(self, client) -> None:
        await _HANDLERS[self.kind](client, self.payload)


async def _press_key(client, key: KeyPress) -> None:
    await client.send_command(key.name, key.state)


async def _type_text(client, text: str) -> None:
    await client.literal(text)


async def _search(client, params: Dict[str, str]) -> None:
    await client.search(params)


async def _launch(client, target: LaunchTarget) -> None:
    app = await client.get_app(target.app_key)
    if app is None:
        raise RokuValidationError(f"App {target.app_key} not found")
    await client.launch(app)


_HANDLERS: Dict[CommandKind, Callable[[Any, Any], Awaitable[None]]] = {
    CommandKind.KEY: _press_key,
    CommandKind.TEXT: _type_text,
    CommandKind.SEARCH: _search,
    CommandKind.LAUNCH: _launch,
}
