"""
Figma Tools - OpenAI Agent Tools

This module defines the tools that the agent can use to build designs in
Figma through the plugin bridge. Each tool maps to exactly one plugin
command kind and returns a plain-text summary, never raw structured data.

The bridge reaches the tools as the run context
(`Runner.run(agent, input, context=bridge)`), so tools never depend on
global state. The `create_*`/`style_*`/... coroutines below the tool
definitions hold the actual logic and take the bridge explicitly.
"""


import logging
from typing import Any, Dict, List, Optional

from agents import RunContextWrapper, function_tool

from figma_communicator import BridgeError
from plugin_bridge import PluginBridge
from plugin_commands import (
    AddElementPayload,
    ArrangeLayoutPayload,
    CommandKind,
    CreateWireframePayload,
    Dimensions,
    ExportDesignPayload,
    ModifyElementPayload,
    PluginCommand,
    PluginResponse,
    StyleElementPayload,
    generate_command_id,
)

logger = logging.getLogger(__name__)


# ============================================
# ============ INTERNAL HELPERS ==============
# ============================================

CURRENT_SELECTION = "current-selection"

COMPONENT_ELEMENT_TYPES = {
    "button": "BUTTON",
    "card": "CARD",
    "input": "INPUT",
    "form": "FRAME",  # Custom frame for form
    "navigation": "NAVBAR",
}

DESIGN_TYPE_PAGES = {
    "website": ["Home", "About", "Contact", "Services"],
    "mobile app": ["Home", "Login", "Profile", "Settings"],
    "dashboard": ["Home", "Analytics", "Reports", "Settings"],
}


def _data(response: PluginResponse) -> Dict[str, Any]:
    return response.data if isinstance(response.data, dict) else {}


def _summarize(response: PluginResponse, text: str) -> str:
    """Flag placeholder results so the agent knows nothing changed in Figma."""
    if response.is_placeholder:
        return f"{text} (placeholder: no live Figma plugin connected, nothing was changed)"
    return text


def _target(node_id: Optional[str]) -> Optional[str]:
    # "current-selection" lets the plugin resolve the target itself
    if not node_id or node_id == CURRENT_SELECTION:
        return None
    return node_id


def _element_type(component_type: str) -> str:
    return COMPONENT_ELEMENT_TYPES.get(component_type.lower(), component_type.upper())


async def _add_element(
    bridge: PluginBridge,
    component_type: str,
    description: str,
    style: str = "modern",
    parent_node_id: Optional[str] = None,
) -> PluginResponse:
    payload = AddElementPayload(
        elementType=_element_type(component_type),
        parent=_target(parent_node_id),
        properties={
            "name": f"{component_type} - {description[:20]}...",
            "text": description,
            "content": description,
            "style": style,
        },
    )
    command = PluginCommand.create(CommandKind.ADD_ELEMENT, payload, generate_command_id("component"))
    return await bridge.send(command)


# ============================================
# ============ TOOL IMPLEMENTATIONS ==========
# ============================================

async def create_frame(
    bridge: PluginBridge,
    name: str,
    width: int = 1920,
    height: int = 1080,
    background: str = "#FFFFFF",
) -> str:
    logger.info(f"🖼️ Creating frame '{name}' ({width}x{height}, background {background})")
    payload = CreateWireframePayload(
        description=name,
        pages=["Home"],
        style="minimal",
        dimensions=Dimensions(width=width, height=height),
        designSystem={"background": background},
        renamePage=False,
    )
    command = PluginCommand.create(CommandKind.CREATE_WIREFRAME, payload, generate_command_id("frame"))
    try:
        response = await bridge.send(command)
    except BridgeError as e:
        logger.error(f"❌ Tool create_figma_frame failed: {e}")
        return f"Error creating frame: {e}"

    data = _data(response)
    frame_id = data.get("wireframeId") or (data.get("pageIds") or ["unknown-id"])[0]
    logger.info(f"✅ Frame created: wireframeId={data.get('wireframeId')}, activePageId={data.get('activePageId')}")
    return _summarize(response, f'Successfully created frame "{name}" ({width}x{height}) with ID: {frame_id}')


async def create_component(
    bridge: PluginBridge,
    component_type: str,
    description: str,
    style: str = "modern",
    parent_node_id: Optional[str] = None,
) -> str:
    logger.info(f"🧩 Creating {component_type} component (parent={parent_node_id or CURRENT_SELECTION})")
    try:
        response = await _add_element(bridge, component_type, description, style, parent_node_id)
    except BridgeError as e:
        logger.error(f"❌ Tool create_figma_component failed: {e}")
        return f"Error creating component: {e}"

    component_id = _data(response).get("id") or "unknown-id"
    return _summarize(response, f"Successfully created {component_type} component with ID: {component_id}")


async def style_node(
    bridge: PluginBridge,
    style_description: str,
    node_id: Optional[str] = None,
    fill_color: Optional[str] = None,
    stroke_color: Optional[str] = None,
    text_properties: Optional[Dict[str, Any]] = None,
) -> str:
    logger.info(f"🎨 Styling node {node_id or CURRENT_SELECTION}: {style_description}")
    text_props = dict(text_properties or {})
    # A bare description doubles as text content for text nodes
    if not text_props.get("content") and not text_props.get("text"):
        text_props["text"] = style_description

    styles: Dict[str, Any] = {"description": style_description, **text_props}
    if fill_color:
        styles["fill"] = fill_color
    if stroke_color:
        styles["stroke"] = stroke_color

    payload = StyleElementPayload(elementId=_target(node_id), styles=styles)
    command = PluginCommand.create(CommandKind.STYLE_ELEMENT, payload, generate_command_id("style"))
    try:
        response = await bridge.send(command)
    except BridgeError as e:
        logger.error(f"❌ Tool style_figma_node failed: {e}")
        return f"Error styling node: {e}"

    styled_id = _data(response).get("id") or node_id or "unknown-id"
    return _summarize(response, f"Successfully styled node with ID: {styled_id}")


async def modify_element(bridge: PluginBridge, element_id: str, modifications: Dict[str, Any]) -> str:
    logger.info(f"✏️ Modifying element {element_id}: {sorted(modifications)}")
    payload = ModifyElementPayload(elementId=element_id, modifications=modifications)
    command = PluginCommand.create(CommandKind.MODIFY_ELEMENT, payload, generate_command_id("modify"))
    try:
        response = await bridge.send(command)
    except BridgeError as e:
        logger.error(f"❌ Tool modify_figma_element failed: {e}")
        return f"Error modifying element: {e}"
    return _summarize(response, f"Successfully modified element with ID: {_data(response).get('id') or element_id}")


async def arrange_layout(
    bridge: PluginBridge,
    parent_id: str,
    layout: str = "VERTICAL",
    properties: Optional[Dict[str, Any]] = None,
) -> str:
    logger.info(f"📐 Arranging {parent_id} as {layout}")
    payload = ArrangeLayoutPayload(parentId=parent_id, layout=layout.upper(), properties=properties)
    command = PluginCommand.create(CommandKind.ARRANGE_LAYOUT, payload, generate_command_id("layout"))
    try:
        response = await bridge.send(command)
    except BridgeError as e:
        logger.error(f"❌ Tool arrange_figma_layout failed: {e}")
        return f"Error arranging layout: {e}"
    return _summarize(response, f"Successfully applied {layout.upper()} layout to frame with ID: {parent_id}")


async def generate_design(bridge: PluginBridge, prompt: str, design_type: str, style: str = "modern") -> str:
    logger.info(f"✨ Generating {design_type} design ({style}): {prompt[:60]}")
    pages = DESIGN_TYPE_PAGES.get(design_type, ["Home"])
    is_mobile = design_type == "mobile app"
    payload = CreateWireframePayload(
        description=prompt,
        pages=pages,
        style=style,
        designSystem={"type": design_type},
        dimensions=Dimensions(width=375 if is_mobile else 1440, height=812 if is_mobile else 900),
        renamePage=True,
    )
    command = PluginCommand.create(CommandKind.CREATE_WIREFRAME, payload, generate_command_id("design"))
    try:
        response = await bridge.send(command)
    except BridgeError as e:
        logger.error(f"❌ Tool generate_figma_design failed: {e}")
        return f"Error generating design: {e}"

    data = _data(response)
    page_ids: List[str] = data.get("pageIds") or []
    if page_ids:
        first_page_id = page_ids[0]
        try:
            await _add_element(bridge, "navbar", f"{design_type} navigation", style, first_page_id)
            if design_type in ("website", "dashboard"):
                await _add_element(bridge, "frame", f"Hero section for {prompt}", style, first_page_id)
            logger.info("🧩 Added initial components to design")
        except BridgeError as e:
            # The wireframe exists; a missing header is not worth failing the tool
            logger.warning(f"⚠️ Created wireframe but failed to add elements: {e}")

    design_id = data.get("wireframeId") or (page_ids or ["unknown-id"])[0]
    return _summarize(
        response,
        f"Successfully generated {design_type} design based on prompt with root frame ID: {design_id}",
    )


async def export_design(
    bridge: PluginBridge,
    node_id: Optional[str] = None,
    export_format: str = "png",
    scale: float = 1,
    include_background: bool = True,
) -> str:
    logger.info(f"📦 Exporting {node_id or CURRENT_SELECTION} as {export_format} @{scale}x")
    target = _target(node_id)
    payload = ExportDesignPayload(
        selection=[target] if target else None,
        settings={
            "format": export_format.upper(),
            "constraint": {"type": "SCALE", "value": scale},
            "includeBackground": include_background,
        },
    )
    command = PluginCommand.create(CommandKind.EXPORT_DESIGN, payload, generate_command_id("export"))
    try:
        response = await bridge.send(command)
    except BridgeError as e:
        logger.error(f"❌ Tool export_figma_design failed: {e}")
        return f"Error exporting design: {e}"

    files = _data(response).get("files") or []
    # Never log or return the base64 payload itself
    logger.info(f"✅ Design exported: {len(files)} files")
    if not files:
        return _summarize(response, "Export completed but no files returned")
    first = files[0]
    file_name = first.get("name") if isinstance(first.get("name"), str) else "file"
    file_format = first.get("format") if isinstance(first.get("format"), str) else export_format
    return _summarize(
        response,
        f"Successfully exported design: Exported {file_name} as {file_format} (data available in base64)",
    )


async def describe_selection(bridge: PluginBridge) -> str:
    try:
        response = await bridge.get_current_selection()
    except BridgeError as e:
        logger.error(f"❌ Tool get_figma_selection failed: {e}")
        return f"Error reading selection: {e}"

    data = _data(response)
    nodes = data.get("selection") or []
    page = data.get("currentPage") or {}
    if not nodes:
        text = f"Nothing is selected on page {page.get('name', 'unknown')} ({page.get('id', 'unknown')})"
    else:
        listed = ", ".join(f"{n.get('name')} ({n.get('type')}, {n.get('id')})" for n in nodes)
        text = f"{len(nodes)} selected on page {page.get('name', 'unknown')}: {listed}"
    return _summarize(response, text)


async def describe_current_page(bridge: PluginBridge) -> str:
    try:
        response = await bridge.get_current_page()
    except BridgeError as e:
        logger.error(f"❌ Tool get_figma_current_page failed: {e}")
        return f"Error reading current page: {e}"

    data = _data(response)
    page = data.get("currentPage") or {}
    text = (
        f"Current page: {page.get('name', 'unknown')} ({page.get('id', 'unknown')}) "
        f"with {page.get('childrenCount', 0)} top-level nodes. "
        f"Active page: {data.get('activePageId') or 'none'}; "
        f"active wireframe: {data.get('activeWireframeId') or 'none'}; "
        f"{len(data.get('wireframes') or [])} wireframes in this session"
    )
    return _summarize(response, text)


# ============================================
# ===============  TOOLS  ====================
# ============================================

@function_tool
async def create_figma_frame(
    ctx: RunContextWrapper[PluginBridge],
    name: str,
    width: int = 1920,
    height: int = 1080,
    background: str = "#FFFFFF",
) -> str:
    """Create a new frame in Figma with the given dimensions and background.

    Use this to start a new design or add a new screen to an existing design.
    The frame is created at the root level of the current page.

    Args:
        name: Name of the frame.
        width: Width of the frame in pixels.
        height: Height of the frame in pixels.
        background: Background color (hex, rgba, or name).
    """
    return await create_frame(ctx.context, name, width, height, background)


@function_tool
async def create_figma_component(
    ctx: RunContextWrapper[PluginBridge],
    type: str,
    description: str,
    style: str = "modern",
    parent_node_id: Optional[str] = None,
) -> str:
    """Create a UI component (button, card, input, form, navigation, or custom) from a description.

    Purpose & Use Case
    --------------------
    Adds a single element to the design. Without `parent_node_id` the element
    goes into the active page of the session (the page of the last wireframe
    created), falling back to the plugin's own parent resolution.

    Args:
        type: Component kind: "button", "card", "input", "form", "navigation", or any custom element type.
        description: How the component should look and what it says.
        style: Visual style, e.g. "modern", "minimal", "colorful".
        parent_node_id: Node that should contain the component. Pass "current-selection" to use the selection.

    Agent Guidance
    --------------
    Create the frame or wireframe first, then add components into it one by one.
    """
    return await create_component(ctx.context, type, description, style, parent_node_id)


@function_tool(strict_mode=False)
async def style_figma_node(
    ctx: RunContextWrapper[PluginBridge],
    style_description: str,
    node_id: Optional[str] = None,
    fill_color: Optional[str] = None,
    stroke_color: Optional[str] = None,
    text_properties: Optional[Dict[str, Any]] = None,
) -> str:
    """Apply visual styling (fills, strokes, typography) to a node or the current selection.

    Args:
        style_description: Natural-language description of the desired style.
        node_id: Node to style; the current selection is used when omitted.
        fill_color: Fill color (hex, rgba, or name).
        stroke_color: Stroke color (hex, rgba, or name).
        text_properties: Text styling properties, for text nodes.
    """
    return await style_node(ctx.context, style_description, node_id, fill_color, stroke_color, text_properties)


@function_tool(strict_mode=False)
async def modify_figma_element(ctx: RunContextWrapper[PluginBridge], element_id: str, modifications: Dict[str, Any]) -> str:
    """Change properties of an existing element.

    Args:
        element_id: Node to modify.
        modifications: Property names mapped to their new values.
    """
    return await modify_element(ctx.context, element_id, modifications)


@function_tool(strict_mode=False)
async def arrange_figma_layout(
    ctx: RunContextWrapper[PluginBridge],
    parent_id: str,
    layout: str = "VERTICAL",
    properties: Optional[Dict[str, Any]] = None,
) -> str:
    """Arrange the children of a frame with auto-layout.

    Args:
        parent_id: Frame whose children are arranged.
        layout: "HORIZONTAL", "VERTICAL", "GRID", or "NONE".
        properties: Optional itemSpacing, padding*, primaryAxisAlignItems, counterAxisAlignItems.
    """
    return await arrange_layout(ctx.context, parent_id, layout, properties)


@function_tool
async def generate_figma_design(
    ctx: RunContextWrapper[PluginBridge],
    prompt: str,
    type: str,
    style: str = "modern",
) -> str:
    """Generate a complete Figma design (pages, navigation, hero) from a text prompt.

    High-level tool: creates a wireframe with pages suited to the design type
    and seeds the first page with a navigation bar (and a hero section for
    websites and dashboards). Ideal for quick mockups.

    Args:
        prompt: Detailed description of the design to create.
        type: "website", "mobile app", "dashboard", "landing page", "form", or "custom".
        style: Design style, e.g. "minimal", "colorful", "corporate".
    """
    return await generate_design(ctx.context, prompt, type, style)


@function_tool
async def export_figma_design(
    ctx: RunContextWrapper[PluginBridge],
    node_id: Optional[str] = None,
    format: str = "png",
    scale: float = 1,
    include_background: bool = True,
) -> str:
    """Export a node, the current selection, or the page as an image.

    Args:
        node_id: Node to export; the current selection is used when omitted.
        format: "png", "jpg", "svg", or "pdf".
        scale: Export scale (1x, 2x, ...).
        include_background: Whether to include the background.
    """
    return await export_design(ctx.context, node_id, format, scale, include_background)


@function_tool
async def get_figma_selection(ctx: RunContextWrapper[PluginBridge]) -> str:
    """Describe the nodes currently selected in Figma."""
    return await describe_selection(ctx.context)


@function_tool
async def get_figma_current_page(ctx: RunContextWrapper[PluginBridge]) -> str:
    """Describe the current page, the active page/wireframe, and wireframes created this session."""
    return await describe_current_page(ctx.context)


ALL_TOOLS = [
    create_figma_frame,
    create_figma_component,
    style_figma_node,
    modify_figma_element,
    arrange_figma_layout,
    generate_figma_design,
    export_figma_design,
    get_figma_selection,
    get_figma_current_page,
]
