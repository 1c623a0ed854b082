import copy
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from plugin_commands import CommandKind, PluginCommand, PluginResponse, QUERY_KINDS


logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _unique(ids: Any) -> List[str]:
    """Order-preserving de-duplication of a page id collection."""
    seen: Dict[str, None] = {}
    for item in ids or []:
        seen.setdefault(str(item), None)
    return list(seen)


@dataclass
class WireframeRecord:
    """A wireframe the bridge has seen created during this process."""

    id: str
    name: str
    page_ids: List[str] = field(default_factory=list)
    created_at_ms: int = field(default_factory=_now_ms)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "WireframeRecord":
        return cls(
            id=str(raw.get("id")),
            name=str(raw.get("name") or ""),
            page_ids=_unique(raw.get("pageIds")),
            created_at_ms=int(raw.get("createdAt") or _now_ms()),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "pageIds": list(self.page_ids), "createdAt": self.created_at_ms}


@dataclass
class SessionContext:
    """Ambient target state that lets short commands omit an explicit target."""

    active_wireframe_id: Optional[str] = None
    active_page_id: Optional[str] = None
    wireframes: List[WireframeRecord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "activeWireframeId": self.active_wireframe_id,
            "activePageId": self.active_page_id,
            "wireframes": [w.to_dict() for w in self.wireframes],
        }


class SessionContextStore:
    """Process-wide session context.

    Only the bridge writes to it, after a command settles. Readers get
    snapshots from `get()` and can never mutate the live state.
    """

    def __init__(self) -> None:
        self._context = SessionContext()

    # Public API
    def get(self) -> SessionContext:
        return copy.deepcopy(self._context)

    def reset(self) -> None:
        self._context = SessionContext()

    def apply_response(self, response: PluginResponse) -> None:
        """Fold a settled response into the context.

        Replaying the same response leaves the context unchanged after the
        first application.
        """
        data = response.data
        if not isinstance(data, Mapping):
            return

        ctx = self._context
        if data.get("activePageId"):
            ctx.active_page_id = str(data["activePageId"])
            logger.debug(f"🧭 Session context updated: activePageId = {ctx.active_page_id}")

        if data.get("activeWireframeId"):
            ctx.active_wireframe_id = str(data["activeWireframeId"])
            logger.debug(f"🧭 Session context updated: activeWireframeId = {ctx.active_wireframe_id}")

        if isinstance(data.get("wireframes"), list):
            ctx.wireframes = [WireframeRecord.from_dict(w) for w in data["wireframes"] if isinstance(w, Mapping)]
            logger.debug(f"🧭 Session context updated: {len(ctx.wireframes)} wireframes")

        if response.type == CommandKind.CREATE_WIREFRAME.value:
            wireframe_id = data.get("wireframeId")
            page_ids = data.get("pageIds")
            if wireframe_id and page_ids:
                self._upsert_wireframe(str(wireframe_id), _unique(page_ids))

    def inject_into(self, command: PluginCommand) -> PluginCommand:
        """Return a copy of `command` with the active page filled in as default target.

        Queries and commands that already name their target are returned as-is.
        """
        page_id = self._context.active_page_id
        kind = command.kind
        if not page_id or kind is None or kind in QUERY_KINDS:
            return command

        if kind == CommandKind.ADD_ELEMENT and not command.payload.get("parent"):
            logger.debug(f"Using active page {page_id} as parent for ADD_ELEMENT")
            return command.model_copy(update={"payload": {**command.payload, "parent": page_id}})

        if kind == CommandKind.STYLE_ELEMENT and not command.payload.get("elementId"):
            # Plugin still styles the selection; pageId scopes the lookup
            logger.debug(f"Including active page {page_id} context for STYLE_ELEMENT")
            return command.model_copy(update={"payload": {**command.payload, "pageId": page_id}})

        return command

    # Internal
    def _upsert_wireframe(self, wireframe_id: str, page_ids: List[str]) -> None:
        for record in self._context.wireframes:
            if record.id == wireframe_id:
                record.page_ids = page_ids
                logger.debug(f"🧭 Updated wireframe {wireframe_id} with {len(page_ids)} pages")
                return

        self._context.wireframes.append(
            WireframeRecord(
                id=wireframe_id,
                name=f"Wireframe {len(self._context.wireframes) + 1}",
                page_ids=page_ids,
            )
        )
        logger.debug(f"🧭 Added wireframe {wireframe_id} with {len(page_ids)} pages to session context")
