"""Layout agent tool loop, driven by a fake Claude client."""
import json
from types import SimpleNamespace

import pytest

from brickmind.agents.layout_agent import _extract_json, run_layout_agent
from brickmind.errors import PayloadFormatError, UpstreamError
from brickmind.tools.physics_validator import validate_physics
from brickmind.tools.sanitizer import build_from_source


def _usage():
    return SimpleNamespace(input_tokens=100, output_tokens=20, cache_read_input_tokens=50, cache_creation_input_tokens=0)


def _tool_use(name, args, block_id="tool_1"):
    return SimpleNamespace(
        stop_reason="tool_use",
        usage=_usage(),
        content=[SimpleNamespace(type="tool_use", id=block_id, name=name, input=args)],
    )


def _final(text):
    return SimpleNamespace(stop_reason="end_turn", usage=_usage(), content=[SimpleNamespace(type="text", text=text)])


class FakeClient:
    """Stands in for anthropic.Anthropic: replays canned responses in order."""

    def __init__(self, responses):
        self._responses = list(responses)
        self.requests = []
        self.messages = self

    def create(self, **kwargs):
        self.requests.append(kwargs)
        return self._responses.pop(0)


LAYOUT = {
    "name": "Tiny Car",
    "pieces": [
        {"part": "3020", "color": 1, "x": 0, "y": 0, "z": 0},
        {"part": "3001", "color": 4, "x": 0, "y": 8, "z": 0},
    ],
}


def test_tool_loop_then_json_answer():
    client = FakeClient([
        _tool_use("list_parts", {"shape": "plate"}),
        _final("Here you go:\n```json\n" + json.dumps(LAYOUT) + "\n```"),
    ])
    result = run_layout_agent("tiny car", 20, client=client)

    assert result.result == LAYOUT
    assert result.tool_calls == ["list_parts({'shape': 'plate'})"]
    assert result.api_calls == 2
    assert result.input_tokens == 200
    assert result.cache_read_tokens == 100

    # The tool result went back to Claude in the second request.
    tool_turn = client.requests[1]["messages"][-1]
    assert tool_turn["role"] == "user"
    assert tool_turn["content"][0]["type"] == "tool_result"
    assert "3020" in tool_turn["content"][0]["content"]


def test_count_limit_is_in_the_prompt():
    client = FakeClient([_final(json.dumps(LAYOUT))])
    run_layout_agent("tiny car", 17, client=client)
    assert "17" in client.requests[0]["messages"][0]["content"]


def test_non_json_answer_is_a_payload_error():
    client = FakeClient([_final("I would rather describe it in words.")])
    with pytest.raises(PayloadFormatError):
        run_layout_agent("tiny car", 20, client=client)


def test_repeated_tool_errors_abort():
    client = FakeClient([_tool_use("teleport", {}, f"t{i}") for i in range(3)])
    with pytest.raises(UpstreamError):
        run_layout_agent("tiny car", 20, client=client)


def test_extract_json_from_surrounding_text():
    assert _extract_json('Sure! {"a": {"b": 1}} Hope that helps') == '{"a": {"b": 1}}'


def test_agent_output_is_repaired_by_sanitizer():
    client = FakeClient([_final(json.dumps(LAYOUT))])
    result = build_from_source("tiny car", 20, lambda p: run_layout_agent(p, 20, client=client).result)
    pieces = result.model_options[0].pieces
    assert [p.part_id for p in pieces] == ["3020", "3001"]
    assert validate_physics(pieces).status in ("legal", "unstable")
