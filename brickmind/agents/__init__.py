# Agent implementations for external layout generation.
from brickmind.agents.layout_agent import run_layout_agent, layout_source, AgentResult

__all__ = ["run_layout_agent", "layout_source", "AgentResult"]
