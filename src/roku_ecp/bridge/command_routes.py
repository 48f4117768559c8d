"""
Bridge command routes - every route here goes through the command queue
"""

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from typing import Any, Dict, Optional
import json
import logging

from .commands import CommandKind, CommandRequest
from .errors import BridgeError

logger = logging.getLogger(__name__)

MUTATING_ROUTES = ("/key", "/text", "/search", "/launch")

class CommandResponse(BaseModel):
    ok: bool
    error: Optional[str] = None


async def _read_json(request: Request) -> Optional[Dict[str, Any]]:
    """Request body as a JSON object; anything else reads as None"""
    raw = await request.body()
    if not raw:
        return None
    try:
        data = json.loads(raw)
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def create_command_routes(bridge):
    """Create key/text/search/launch routes for a CommandBridge"""
    router = APIRouter(tags=["commands"], dependencies=[Depends(bridge.authorize)])

    async def _submit(request: Request, kind: CommandKind) -> CommandResponse:
        body = await _read_json(request)
        try:
            command = CommandRequest.from_payload(kind, body, bridge.app_resolver)
            await bridge.queue.run(lambda: command.execute(bridge.client))
        except Exception as e:
            message = str(e) or e.__class__.__name__
            logger.warning(f"{kind.value} command failed: {message}")
            raise BridgeError(400, message, "error") from e

        bridge.stats.record(request.url.path, "ok", command.detail)
        return CommandResponse(ok=True)

    @router.post("/key", response_model=CommandResponse, response_model_exclude_none=True)
    async def press_key(request: Request):
        """Press one key: {"key": "home"}"""
        return await _submit(request, CommandKind.KEY)

    @router.post("/text", response_model=CommandResponse, response_model_exclude_none=True)
    async def type_text(request: Request):
        """Type literal text: {"text": "hello"}"""
        return await _submit(request, CommandKind.TEXT)

    @router.post("/search", response_model=CommandResponse, response_model_exclude_none=True)
    async def search(request: Request):
        """Search with arbitrary fields: {"keyword": "...", "type": "movie"}"""
        return await _submit(request, CommandKind.SEARCH)

    @router.post("/launch", response_model=CommandResponse, response_model_exclude_none=True)
    async def launch(request: Request):
        """Launch an installed app by alias, id or name: {"app": "plex"}"""
        return await _submit(request, CommandKind.LAUNCH)

    return router
