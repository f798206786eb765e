"""Decision service client.

Sends the current frame plus conversation history to an OpenAI-compatible
chat completions endpoint and asks for a structured reply constrained by the
action vocabulary's JSON schema.
"""

from __future__ import annotations

import json
import logging
import re
from typing import TYPE_CHECKING, Any, Optional

import httpx

from surface_pilot.core.errors import DecisionServiceError, ValidationError

if TYPE_CHECKING:
    from surface_pilot.domain.actions import ActionVocabulary

logger = logging.getLogger(__name__)


def parse_json_response(content: str) -> Any:
    """Parse JSON from LLM response, handling markdown code blocks.

    Args:
        content: Raw response content

    Returns:
        Parsed JSON value

    Raises:
        ValidationError: If no JSON can be recovered
    """
    content = (content or "").strip()
    if not content:
        raise ValidationError("Empty response content")

    # Handle markdown code blocks
    if content.startswith("```"):
        lines = content.split("\n")
        lines = lines[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        content = "\n".join(lines)

    try:
        return json.loads(content)
    except json.JSONDecodeError:
        # Tolerate chatter before/after the JSON object
        match = re.search(r"(\{.*\}|\[.*\])", content, re.DOTALL)
        if match:
            try:
                return json.loads(match.group(1))
            except json.JSONDecodeError:
                pass

    logger.error(f"Failed to parse JSON response: {content[:200]}")
    raise ValidationError(f"Invalid JSON response: {content[:100]}")


class DecisionClient:
    """OpenAI-compatible decision service client.

    Args:
        base_url: API base URL (``.../v1``)
        model: Model identifier
        vocabulary: Action vocabulary whose schema constrains the reply
        api_key: Bearer token; omitted from headers when empty
        temperature: Sampling temperature
        timeout: Request timeout in seconds
        transport: Optional httpx transport (tests)
    """

    def __init__(
        self,
        base_url: str,
        model: str,
        vocabulary: "ActionVocabulary",
        api_key: str = "",
        temperature: float = 0.8,
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.vocabulary = vocabulary
        self.api_key = api_key
        self.temperature = temperature
        self.timeout = timeout
        self._transport = transport

    def build_payload(self, image: bytes, history: list[dict[str, Any]]) -> dict[str, Any]:
        from surface_pilot.domain.agent.conversation import build_image_message

        return {
            "model": self.model,
            "messages": [*history, build_image_message(image)],
            "temperature": self.temperature,
            "response_format": {
                "type": "json_schema",
                "json_schema": {
                    "name": "agent_response",
                    "strict": False,
                    "schema": self.vocabulary.json_schema(),
                },
            },
        }

    async def infer(self, image: bytes, history: list[dict[str, Any]]) -> Any:
        """Ask for the next actions and return the parsed (unvalidated) reply.

        Args:
            image: PNG bytes of the current frame
            history: Prior chat messages, instruction first

        Returns:
            The decoded JSON reply

        Raises:
            DecisionServiceError: On transport or HTTP errors
            ValidationError: If the reply is not JSON
        """
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        url = f"{self.base_url}/chat/completions"

        logger.debug(f"Calling decision service: model={self.model}, history={len(history)}")
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, headers=headers, json=self.build_payload(image, history))
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Decision service request failed: {e.response.status_code} - {e.response.text[:200]}"
            )
            raise DecisionServiceError(
                f"Decision service returned {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise DecisionServiceError(f"Decision service unreachable: {e}") from e
        except json.JSONDecodeError as e:
            raise DecisionServiceError("Decision service returned a non-JSON body") from e

        choices = data.get("choices") or []
        content = choices[0].get("message", {}).get("content") if choices else None
        if not content:
            raise DecisionServiceError("No response content from decision service")

        logger.debug(f"Decision service usage: {data.get('usage', {})}")
        return parse_json_response(content)
