"""
Text-marker tool calling for providers without native function calling.

The system prompt gets a block that lists each enabled tool and asks the
model to reply with ``[USE_TOOL:<id>:<json-parameters>]``. Replies are then
scanned for that marker and turned into a RequestedToolCall.
"""

from typing import Any, Optional, Sequence
import json
import re
import uuid

from toolchat.services.tools.schema import RequestedToolCall, ToolCallSource

MARKER_PATTERN = re.compile(r"\[USE_TOOL:(\d+):")
# Used when the parameters are not valid JSON
LOOSE_MARKER_PATTERN = re.compile(r"\[USE_TOOL:(\d+):(.+?)\]", re.DOTALL)

_decoder = json.JSONDecoder()


def format_tool_usage_block(tools: Sequence[Any]) -> str:
    """
    Describe the given tools (objects with id, name and description) and the
    exact invocation syntax expected in the model's raw text.
    """
    if not tools:
        return ""

    entries = "\n".join(
        f"""
Tool {index}: {tool.name}
Tool ID: {tool.id}
Description: {tool.description}
Usage: To use this tool, respond with: [USE_TOOL:{tool.id}:parameters]
Where parameters is a valid JSON object with the parameters for the tool.
"""
        for index, tool in enumerate(tools, start=1)
    )

    return f"""
You have access to the following tools:
{entries}

When you want to use a tool, respond with the [USE_TOOL] syntax mentioned above.
"""


def parse_tool_marker(text: Optional[str]) -> Optional[RequestedToolCall]:
    """
    Find the first ``[USE_TOOL:<id>:<params>]`` marker in ``text``.

    JSON parameters are decoded (nested brackets are fine); anything else is
    kept as the raw string. Returns None when no marker is present.
    """
    if not text:
        return None

    match = MARKER_PATTERN.search(text)
    if not match:
        return None

    tool_id = int(match.group(1))
    rest = text[match.end():].lstrip()
    try:
        arguments, end = _decoder.raw_decode(rest)
        if not rest[end:].lstrip().startswith("]"):
            raise ValueError("marker not closed")
    except ValueError:
        loose = LOOSE_MARKER_PATTERN.search(text, match.start())
        if not loose:
            return None
        arguments = loose.group(2).strip()

    return RequestedToolCall(
        id=f"marker_{uuid.uuid4().hex[:8]}",
        tool_id=tool_id,
        arguments=arguments,
        source=ToolCallSource.TEXT_MARKER,
    )
