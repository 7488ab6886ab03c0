"""
Layout Agent - the external generator for the sanitizer path.

This agent asks Claude for a brick layout as JSON: a list of pieces with part
numbers, LDraw color codes and positions, plus optional per-layer guidance.
Claude can look up the catalog with tools before answering. Nothing it
returns is trusted; the sanitizer snaps and repairs the result.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Callable

import anthropic

from brickmind.errors import PayloadFormatError, UpstreamError
from brickmind.tools.part_catalog import CATALOG_TOOLS, execute_tool


DEFAULT_MODEL = "claude-sonnet-4-20250514"
MAX_CONSECUTIVE_ERRORS = 3


@dataclass
class AgentResult:
    """Result from an agent run, including logging and usage info."""
    result: str | dict
    tool_calls: list[str] = field(default_factory=list)
    conversation: list[dict] = field(default_factory=list)
    api_calls: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_tokens: int = 0
    cache_write_tokens: int = 0


def _extract_json(text: str) -> str:
    """
    Extract JSON from Claude's response, handling various formats.

    Claude might return:
    - Pure JSON
    - JSON wrapped in markdown code blocks
    - JSON with explanatory text before/after
    """
    code_block_pattern = r"```(?:json)?\s*([\s\S]*?)```"
    match = re.search(code_block_pattern, text)
    if match:
        return match.group(1).strip()

    start = text.find("{")
    if start == -1:
        return text

    # Find matching closing brace by counting depth.
    depth = 0
    for i, char in enumerate(text[start:], start):
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start:i+1]

    return text[start:]


# ============================================================================
# System Prompt
# ============================================================================

LAYOUT_SYSTEM_PROMPT = """You are a LEGO model designer. Turn a description into a buildable brick layout.

## Tools

- list_parts(shape): Catalog parts with part_id and stud dimensions. Optional shape filter.
- list_colors(): LDraw color codes with names.

## Units

- LDraw units (LDU). 1 stud = 20 LDU. Brick height = 24 LDU. Plate height = 8 LDU.
- Y = UP. y is the BOTTOM face of the piece. x/z is the CENTER of its footprint.
- rotation is degrees about the vertical axis: 0, 90, 180 or 270.

## Rules

1. Use part_id values from list_parts
2. Start at y=0 and build upward; every piece should rest on studs of a piece below
3. Keep x and z on multiples of 20
4. Do not exceed the piece limit you are given
5. Group pieces into layers and give each layer a short title

## Output Format

Output JSON only (no preamble):

```json
{
  "name": "Model Name",
  "pieces": [
    {"part": "3001", "color": 4, "x": 0, "y": 0, "z": 0, "rotation": 0, "step": 1}
  ],
  "layers": [
    {"layer": 1, "y": 0, "title": "Base", "description": "Lay the chassis plates"}
  ]
}
```
"""


# ============================================================================
# Agent Execution
# ============================================================================

def run_layout_agent(
    prompt: str,
    count_limit: int,
    model: str = DEFAULT_MODEL,
    verbose: bool = False,
    client: Any = None
) -> AgentResult:
    """
    Run the layout agent to produce a raw build payload for a prompt.

    Handles the tool use loop; Claude may look up parts and colors several
    times before answering. The final text is parsed as JSON.

    Returns an AgentResult whose result is the payload dict. Raises
    UpstreamError when the API fails or the agent loops on errors, and
    PayloadFormatError when the answer is not JSON.
    """
    if client is None:
        client = anthropic.Anthropic()

    user_message = f"""Design a brick model for: {prompt}

Use at most {count_limit} pieces."""
    messages = [{"role": "user", "content": user_message}]

    # Track tool calls and usage for logging.
    tool_call_log: list[str] = []
    total_input_tokens = 0
    total_output_tokens = 0
    total_cache_read = 0
    total_cache_write = 0
    api_call_count = 0

    last_error = None
    consecutive_error_count = 0

    while True:
        try:
            response = client.messages.create(
                model=model,
                max_tokens=16384,
                system=[
                    {
                        "type": "text",
                        "text": LAYOUT_SYSTEM_PROMPT,
                        "cache_control": {"type": "ephemeral"}
                    }
                ],
                tools=CATALOG_TOOLS,
                messages=messages
            )
        except anthropic.APIError as e:
            raise UpstreamError(f"Layout agent API call failed: {e}") from e

        api_call_count += 1
        total_input_tokens += response.usage.input_tokens
        total_output_tokens += response.usage.output_tokens
        total_cache_read += getattr(response.usage, 'cache_read_input_tokens', 0) or 0
        total_cache_write += getattr(response.usage, 'cache_creation_input_tokens', 0) or 0

        if verbose:
            print(f"[Layout Agent] Stop reason: {response.stop_reason}")

        if response.stop_reason == "tool_use":
            tool_results = []
            assistant_content = []
            had_error_this_round = False
            current_error = None

            for block in response.content:
                if block.type == "text":
                    assistant_content.append({"type": "text", "text": block.text})
                elif block.type == "tool_use":
                    tool_call_str = f"{block.name}({block.input})"
                    tool_call_log.append(tool_call_str)

                    if verbose:
                        print(f"[Layout Agent] Tool call: {tool_call_str}")

                    result = execute_tool(block.name, block.input)

                    if '"error"' in result:
                        had_error_this_round = True
                        current_error = result

                    assistant_content.append({
                        "type": "tool_use",
                        "id": block.id,
                        "name": block.name,
                        "input": block.input
                    })
                    tool_results.append({
                        "type": "tool_result",
                        "tool_use_id": block.id,
                        "content": result
                    })

            if had_error_this_round:
                if current_error == last_error:
                    consecutive_error_count += 1
                else:
                    consecutive_error_count = 1
                    last_error = current_error

                if consecutive_error_count >= MAX_CONSECUTIVE_ERRORS:
                    raise UpstreamError(
                        f"Layout agent stuck in error loop. "
                        f"Same error occurred {MAX_CONSECUTIVE_ERRORS} times: {last_error}"
                    )
            else:
                consecutive_error_count = 0
                last_error = None

            messages.append({"role": "assistant", "content": assistant_content})
            messages.append({"role": "user", "content": tool_results})
        else:
            text = ""
            for block in response.content:
                if block.type == "text":
                    text = block.text
                    break

            try:
                payload = json.loads(_extract_json(text))
            except json.JSONDecodeError as e:
                raise PayloadFormatError(f"Layout agent returned invalid JSON: {e}") from e

            if verbose and isinstance(payload, dict):
                print(f"[Layout Agent] Received {len(payload.get('pieces') or [])} pieces")

            return AgentResult(
                result=payload,
                tool_calls=tool_call_log,
                conversation=messages,
                api_calls=api_call_count,
                input_tokens=total_input_tokens,
                output_tokens=total_output_tokens,
                cache_read_tokens=total_cache_read,
                cache_write_tokens=total_cache_write
            )


def layout_source(
    count_limit: int,
    model: str = DEFAULT_MODEL,
    verbose: bool = False,
    runs: list[AgentResult] | None = None
) -> Callable[[str], Any]:
    """
    Wrap the agent as a prompt -> payload callable for build_from_source.

    Each AgentResult is appended to runs, when given, so callers can log usage.
    """
    def source(prompt: str) -> Any:
        result = run_layout_agent(prompt, count_limit, model=model, verbose=verbose)
        if runs is not None:
            runs.append(result)
        return result.result

    return source
