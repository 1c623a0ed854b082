import asyncio
import logging
import time
from typing import Any, Dict

from executors import CommandExecutor, ExecutorState
from plugin_commands import CommandKind, PluginCommand, PluginResponse, generate_command_id
from session_context import SessionContext

logger = logging.getLogger(__name__)


def _mint(prefix: str) -> str:
    return generate_command_id(prefix)


def build_simulated_response(command: PluginCommand, context: SessionContext) -> PluginResponse:
    """Synthesize the response a live plugin would plausibly send for `command`.

    Ids already in the session context are reused so that a sequence of
    simulated calls stays self-consistent.
    """
    kind = command.kind
    if kind is None:
        return PluginResponse(
            type=command.type,
            success=False,
            error=f"Unknown command type: {command.type}",
            id=command.id,
            is_response=True,
        )

    payload = command.payload or {}
    wireframe_id = context.active_wireframe_id or _mint("mock-wireframe")
    page_id = context.active_page_id or _mint("mock-page")
    data: Dict[str, Any]

    if kind == CommandKind.CREATE_WIREFRAME:
        pages = payload.get("pages") or ["Home"]
        page_ids = [_mint("mock-page") for _ in pages]
        data = {
            "wireframeId": wireframe_id,
            "pageIds": page_ids,
            "activePageId": page_ids[0],
            "activeWireframeId": wireframe_id,
        }
    elif kind == CommandKind.ADD_ELEMENT:
        data = {
            "id": _mint("mock-element"),
            "type": payload.get("elementType") or "RECTANGLE",
            "parentId": payload.get("parent") or page_id,
            "parentType": "PAGE",
            "activePageId": page_id,
        }
    elif kind == CommandKind.STYLE_ELEMENT:
        data = {
            "id": payload.get("elementId") or _mint("mock-styled-element"),
            "type": "RECTANGLE",
            "activePageId": page_id,
        }
    elif kind == CommandKind.MODIFY_ELEMENT:
        data = {
            "id": payload.get("elementId") or _mint("mock-element"),
            "modified": sorted((payload.get("modifications") or {}).keys()),
            "activePageId": page_id,
        }
    elif kind == CommandKind.ARRANGE_LAYOUT:
        data = {
            "id": payload.get("parentId") or page_id,
            "layout": payload.get("layout") or "NONE",
            "activePageId": page_id,
        }
    elif kind == CommandKind.EXPORT_DESIGN:
        settings = payload.get("settings") or {}
        data = {
            "files": [{
                "name": "Mock Design",
                "data": "base64-encoded-mock-data",
                "format": str(settings.get("format") or "png").lower(),
                "nodeId": (payload.get("selection") or [None])[0] or _mint("mock-node"),
            }],
            "activePageId": page_id,
        }
    elif kind == CommandKind.GET_SELECTION:
        data = {
            "selection": [{"id": _mint("mock-selection"), "name": "Mock Selected Element", "type": "FRAME"}],
            "currentPage": {"id": page_id, "name": "Mock Current Page"},
            "activePageId": page_id,
        }
    else:  # GET_CURRENT_PAGE
        wireframes = [w.to_dict() for w in context.wireframes] or [
            {"id": wireframe_id, "name": "Mock Wireframe", "pageIds": [page_id], "createdAt": int(time.time() * 1000)}
        ]
        data = {
            "currentPage": {"id": page_id, "name": "Mock Current Page", "childrenCount": 5},
            "activePage": {"id": page_id, "name": "Mock Active Page", "childrenCount": 5},
            "activePageId": page_id,
            "activeWireframeId": wireframe_id,
            "allPages": [{"id": page_id, "name": "Mock Page", "isActive": True, "isCurrent": True}],
            "wireframes": wireframes,
        }

    return PluginResponse(type=kind.value, success=True, data=data, id=command.id, is_response=True)


class SimulatedExecutor(CommandExecutor):
    """Answers every command locally without touching Figma.

    The artificial delay keeps caller code paths asynchronous, as they
    would be against a live plugin.
    """

    mode = "simulated"

    def __init__(self, delay: float = 0.3) -> None:
        super().__init__()
        self.delay = delay

    async def initialize(self) -> None:
        logger.info("🧪 Initializing plugin bridge in simulated mode...")
        self._set_state(ExecutorState.SIMULATED)

    async def execute(self, command: PluginCommand, context: SessionContext) -> PluginResponse:
        logger.info(f"🧪 Simulated plugin received command: {command.type} (ID: {command.id})")
        response = build_simulated_response(command, context)
        if not response.success:
            logger.error(f"❌ Protocol error: {response.error}")
        await asyncio.sleep(self.delay)
        return response

    async def shutdown(self) -> None:
        self._set_state(ExecutorState.CLOSED)
