from typing import Any, Dict, List, Optional


SYSTEM_PROMPT = """
            You are a design assistant working inside a live Figma document through a small set of tools.

            ## 1. CORE OPERATING PRINCIPLES

            ### A. Precision & Scope Control
            *   **Do exactly what is asked - nothing more, nothing less.**
            *   Build top-down: create the frame or wireframe first, then add components into it, then style.

            ### B. Session Context
            *   The bridge remembers the active page and wireframe between tool calls.
            *   When you omit `parent_node_id`, new components land on the active page (the first page of
                the last wireframe you created). Pass an explicit id to target anything else.
            *   Call `get_figma_current_page` to see the active page, the active wireframe and every
                wireframe created in this session. Call `get_figma_selection` before styling "this" or "these".

            ### Tool Calling Rules (STRICT)
            - Always provide a SINGLE valid JSON object for tool `arguments` exactly matching the tool schema.
            - Call exactly one tool per turn, wait for its result, then continue.
            - Tool results are short text summaries. Reuse the ids they report in later calls.
            - A result mentioning "placeholder" means no Figma plugin is connected: nothing changed in the
              document. Tell the user instead of retrying.
            - A result starting with "Error" describes a failure reported by Figma. Correct the arguments
              once if the message makes the fix obvious; otherwise report it.

            ### C. Response Style
            Explain briefly what you created or changed and list the ids of the main nodes.
"""


PROMPTS: List[Dict[str, Any]] = [
    {
        "name": "create-website-design",
        "description": "Create a complete website design based on a description",
        "arguments": [
            {"name": "description", "description": "Detailed description of the website purpose and content", "required": True},
            {"name": "style", "description": "Design style (e.g., 'minimal', 'colorful', 'corporate')", "required": False},
        ],
    },
    {
        "name": "create-mobile-app",
        "description": "Create a mobile app interface with key screens",
        "arguments": [
            {"name": "purpose", "description": "Purpose and main functionality of the app", "required": True},
            {"name": "screens", "description": "List of screens to create (e.g., 'login, home, profile')", "required": False},
        ],
    },
    {
        "name": "design-component-system",
        "description": "Create a design system with common components",
        "arguments": [
            {"name": "brandName", "description": "Name of the brand", "required": True},
            {"name": "primaryColor", "description": "Primary brand color (hex)", "required": False},
        ],
    },
]


def get_prompt(name: str) -> Dict[str, Any]:
    for prompt in PROMPTS:
        if prompt["name"] == name:
            return prompt
    raise KeyError(f"Prompt not found: {name}")


def check_prompt_arguments(name: str, args: Dict[str, str]) -> None:
    """Raises KeyError for an unknown prompt, ValueError when a required argument is missing."""
    prompt = get_prompt(name)
    missing = [a["name"] for a in prompt["arguments"] if a.get("required") and not args.get(a["name"])]
    if missing:
        raise ValueError(f"Missing required argument(s) for {name}: {', '.join(missing)}")


def render_prompt(name: str, args: Optional[Dict[str, str]] = None) -> str:
    """Render a catalog prompt into the user message it stands for.

    Raises:
        KeyError: If no prompt is registered under `name`
        ValueError: If a required argument is missing
    """
    args = args or {}
    check_prompt_arguments(name, args)
    if name == "create-website-design":
        return (
            "Create a website design with the following details:\n\n"
            f"Description: {args.get('description', '')}\n"
            f"Style: {args.get('style') or 'modern'}\n\n"
            "Please generate a clean, professional design that includes navigation, "
            "hero section, content blocks, and footer."
        )
    if name == "create-mobile-app":
        return (
            f"Design a mobile app with the following purpose: {args.get('purpose', '')}\n\n"
            f"Please create these screens: {args.get('screens') or 'login, home, profile, settings'}\n\n"
            "Ensure the design is mobile-friendly with appropriate UI elements and navigation patterns."
        )
    if name == "design-component-system":
        return (
            f"Create a design system for {args.get('brandName', '')} "
            f"with primary color {args.get('primaryColor') or '#4285F4'}.\n\n"
            "Please include:\n"
            "- Color palette (primary, secondary, neutrals)\n"
            "- Typography scale\n"
            "- Button states\n"
            "- Form elements\n"
            "- Cards and containers"
        )
    raise KeyError(f"Prompt not found: {name}")
