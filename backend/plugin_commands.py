"""
Plugin Commands - Wire Data Model

Commands sent to the Figma plugin and the responses it sends back.
Each command kind carries its own pydantic payload model; on the wire a
command is a single JSON object `{type, payload, id}` and a response is
`{type, success, data?, error?, id, _isResponse}`.
"""

import itertools
import json
import time
from enum import Enum
from typing import Any, Dict, List, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field


class CommandKind(str, Enum):
    """Closed set of commands the plugin understands."""

    CREATE_WIREFRAME = "CREATE_WIREFRAME"
    ADD_ELEMENT = "ADD_ELEMENT"
    STYLE_ELEMENT = "STYLE_ELEMENT"
    MODIFY_ELEMENT = "MODIFY_ELEMENT"
    ARRANGE_LAYOUT = "ARRANGE_LAYOUT"
    EXPORT_DESIGN = "EXPORT_DESIGN"
    GET_SELECTION = "GET_SELECTION"
    GET_CURRENT_PAGE = "GET_CURRENT_PAGE"


# Pure queries: never rewritten with session context
QUERY_KINDS = frozenset({CommandKind.GET_SELECTION, CommandKind.GET_CURRENT_PAGE})


# ============================================
# ============ PAYLOAD MODELS ================
# ============================================

class _Payload(BaseModel):
    # The plugin may accept fields the bridge does not know about
    model_config = ConfigDict(extra="allow")


class Dimensions(BaseModel):
    width: int
    height: int


class CreateWireframePayload(_Payload):
    description: str
    pages: List[str] = Field(default_factory=lambda: ["Home"])
    style: str = "minimal"
    dimensions: Optional[Dimensions] = None
    designSystem: Optional[Dict[str, Any]] = None
    renamePage: bool = False


class AddElementPayload(_Payload):
    elementType: str = "RECTANGLE"
    parent: Optional[str] = None
    properties: Dict[str, Any] = Field(default_factory=dict)


class StyleElementPayload(_Payload):
    elementId: Optional[str] = None
    styles: Dict[str, Any] = Field(default_factory=dict)


class ModifyElementPayload(_Payload):
    elementId: str
    modifications: Dict[str, Any] = Field(default_factory=dict)


class ArrangeLayoutPayload(_Payload):
    parentId: str
    layout: str = "NONE"
    properties: Optional[Dict[str, Any]] = None


class ExportDesignPayload(_Payload):
    selection: Optional[List[str]] = None
    settings: Dict[str, Any] = Field(default_factory=dict)


class QueryPayload(_Payload):
    pass


PAYLOAD_MODELS: Dict[CommandKind, Type[_Payload]] = {
    CommandKind.CREATE_WIREFRAME: CreateWireframePayload,
    CommandKind.ADD_ELEMENT: AddElementPayload,
    CommandKind.STYLE_ELEMENT: StyleElementPayload,
    CommandKind.MODIFY_ELEMENT: ModifyElementPayload,
    CommandKind.ARRANGE_LAYOUT: ArrangeLayoutPayload,
    CommandKind.EXPORT_DESIGN: ExportDesignPayload,
    CommandKind.GET_SELECTION: QueryPayload,
    CommandKind.GET_CURRENT_PAGE: QueryPayload,
}

_missing_models = set(CommandKind) - set(PAYLOAD_MODELS)
if _missing_models:
    raise RuntimeError(f"No payload model for {sorted(k.value for k in _missing_models)}")


# ============================================
# =============== ENVELOPES ==================
# ============================================

_id_counter = itertools.count()


def generate_command_id(prefix: str = "cmd") -> str:
    """Mint a process-unique command id.

    The counter keeps ids distinct even when several are minted within the
    same millisecond; the timestamp only makes them readable in logs.
    """
    return f"{prefix}_{int(time.time() * 1000)}_{next(_id_counter)}"


class PluginCommand(BaseModel):
    """A command addressed to the plugin.

    `type` stays a plain string so that building a command never fails;
    an unknown kind is rejected when the command is executed.
    """

    type: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    id: Optional[str] = None

    @classmethod
    def create(
        cls,
        kind: Union[CommandKind, str],
        payload: Union[_Payload, Dict[str, Any], None] = None,
        command_id: Optional[str] = None,
    ) -> "PluginCommand":
        if isinstance(payload, BaseModel):
            payload = payload.model_dump(exclude_none=True)
        return cls(
            type=kind.value if isinstance(kind, CommandKind) else str(kind),
            payload=dict(payload or {}),
            id=command_id,
        )

    @property
    def kind(self) -> Optional[CommandKind]:
        try:
            return CommandKind(self.type)
        except ValueError:
            return None

    def typed_payload(self) -> _Payload:
        """Parse the payload with the model registered for this kind.

        Raises:
            ValueError: unknown kind or a payload the model rejects
        """
        kind = self.kind
        if kind is None:
            raise ValueError(f"Unknown command type: {self.type}")
        return PAYLOAD_MODELS[kind].model_validate(self.payload)

    def to_wire(self) -> str:
        """Serialize as one compact JSON line (without the trailing newline)."""
        return json.dumps(self.model_dump(exclude_none=True), separators=(",", ":"), ensure_ascii=False)


class PluginResponse(BaseModel):
    """A response from the plugin (or a synthesized one).

    `_isResponse` marks the message as a response so an echo on a shared
    duplex channel is never mistaken for a fresh command. `_isMockFallback`
    flags placeholders produced while no host is reachable.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    type: str
    success: bool
    data: Optional[Any] = None
    error: Optional[Union[str, Dict[str, Any]]] = None
    id: Optional[str] = None
    is_response: bool = Field(default=False, alias="_isResponse")
    is_placeholder: bool = Field(default=False, alias="_isMockFallback")

    @classmethod
    def from_wire(cls, raw: Union[str, Dict[str, Any]]) -> "PluginResponse":
        message = json.loads(raw) if isinstance(raw, str) else raw
        return cls.model_validate(message)

    def to_wire(self) -> str:
        return json.dumps(self.model_dump(by_alias=True, exclude_none=True), separators=(",", ":"), ensure_ascii=False)
