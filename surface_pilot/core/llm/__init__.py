"""Decision service client (OpenAI-compatible chat completions)."""
from surface_pilot.core.llm.decision import DecisionClient, parse_json_response

__all__ = ["DecisionClient", "parse_json_response"]
