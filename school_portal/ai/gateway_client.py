"""
AI Gateway Client
Talks to an OpenAI-compatible chat completions gateway over HTTP
"""

import httpx
import json
import logging
from typing import Any, Dict, List, Optional
from pydantic import BaseModel
import re

from school_portal.core.config import settings

logger = logging.getLogger(__name__)


# ============================================================================
# Configuration
# ============================================================================

DEFAULT_TIMEOUT = 60.0
RATE_LIMIT_MESSAGE = "Rate limit exceeded"
CREDITS_EXHAUSTED_MESSAGE = "AI credits exhausted"


# ============================================================================
# Errors and message models
# ============================================================================

class AIGatewayError(Exception):
    """Gateway failure carrying the HTTP status reported to API callers"""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class ChatMessage(BaseModel):
    role: str
    content: str


# ============================================================================
# Response parsing helpers
# ============================================================================

def clean_json_response(text: str) -> str:
    """Strip markdown code fences and surrounding whitespace from model output"""
    text = re.sub(r'```json\s*', '', text)
    text = re.sub(r'```\s*', '', text)
    return text.strip()


def extract_json_array(text: str) -> List[Any]:
    """
    Pull the first-to-last bracketed JSON array out of model output.

    Returns:
        Parsed list, or [] when no array is present

    Raises:
        ValueError: An array is present but is not valid JSON
    """
    match = re.search(r'\[[\s\S]*\]', clean_json_response(text or ""))
    if not match:
        return []
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ValueError(f"Malformed JSON array in AI response: {e}")
    if not isinstance(parsed, list):
        return []
    return parsed


def extract_json_object(text: str) -> Optional[Dict[str, Any]]:
    """Parse a JSON object answer (quiz, flashcards); None when the text is not JSON"""
    cleaned = clean_json_response(text or "")
    match = re.search(r'\{[\s\S]*\}', cleaned)
    if not match:
        return None
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


# ============================================================================
# Client
# ============================================================================

class AIGatewayClient:
    """
    Client for the hosted chat completions gateway.

    One POST per call, no retries. Upstream failures surface as AIGatewayError.
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str],
        model: str,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            base_url: Gateway base URL, e.g. https://ai.gateway.lovable.dev/v1
            api_key: Bearer key; calls fail with 503 when missing
            model: Model name sent with every request
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.transport = transport
        self.completions_url = f"{self.base_url}/chat/completions"

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def chat(
        self,
        messages: List[Dict[str, str]],
        temperature: Optional[float] = None,
    ) -> str:
        """
        Send a chat completion request and return the assistant text.

        Args:
            messages: [{"role": "system"|"user"|"assistant", "content": "..."}]
            temperature: Sampling temperature; gateway default when None

        Returns:
            choices[0].message.content

        Raises:
            AIGatewayError: 503 unconfigured, 429 rate limited, 402 out of
                credits, 502 for any other upstream failure
        """
        if not self.api_key:
            raise AIGatewayError(503, "AI gateway is not configured")

        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": [ChatMessage(**m).model_dump() for m in messages],
        }
        if temperature is not None:
            payload["temperature"] = temperature

        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
                response = await client.post(
                    self.completions_url,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json=payload,
                )
                response.raise_for_status()
                result = response.json()

        except httpx.HTTPStatusError as e:
            code = e.response.status_code
            logger.error(f"AI gateway returned {code}: {e.response.text[:200]}")
            if code == 429:
                raise AIGatewayError(429, RATE_LIMIT_MESSAGE)
            if code == 402:
                raise AIGatewayError(402, CREDITS_EXHAUSTED_MESSAGE)
            raise AIGatewayError(502, f"AI request failed: {code}")

        except httpx.TimeoutException:
            logger.error("AI gateway request timed out")
            raise AIGatewayError(502, "AI request timed out")

        except httpx.HTTPError as e:
            logger.error(f"AI gateway transport error: {e}", exc_info=True)
            raise AIGatewayError(502, "AI gateway unreachable")

        except ValueError as e:
            logger.error(f"AI gateway returned invalid JSON: {e}")
            raise AIGatewayError(502, "Invalid response from AI gateway")

        try:
            content = result["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            logger.error(f"Unexpected AI gateway payload: {str(result)[:200]}")
            raise AIGatewayError(502, "Invalid response from AI gateway")

        return content or ""


# ============================================================================
# Singleton Instance and Dependency
# ============================================================================

_gateway_client_instance: Optional[AIGatewayClient] = None


def get_gateway_client() -> AIGatewayClient:
    """Get or create the gateway client from settings (FastAPI dependency)"""
    global _gateway_client_instance
    if _gateway_client_instance is None:
        _gateway_client_instance = AIGatewayClient(
            base_url=settings.AI_GATEWAY_URL,
            api_key=settings.AI_GATEWAY_API_KEY,
            model=settings.AI_MODEL,
            timeout=settings.AI_TIMEOUT_SECONDS,
        )
    return _gateway_client_instance
