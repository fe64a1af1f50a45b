"""
Client for the OpenAI-chat-compatible text generation endpoint (Groq).
"""
import logging
from typing import Any, Dict, Optional
import httpx

from peerlearn.core.config import settings
from peerlearn.core.errors import UpstreamError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a helpful assistant that generates structured learning roadmaps in JSON format. "
    "Always respond with valid JSON only, without any markdown formatting or explanations."
)

class GroqClient:
    """Thin adapter: ``generate(prompt) -> text``."""

    def __init__(self, api_key: Optional[str] = None, url: Optional[str] = None,
                 timeout: Optional[float] = None, transport: Optional[httpx.BaseTransport] = None):
        self.api_key = api_key if api_key is not None else (
            settings.GROQ_API_KEY.get_secret_value() if settings.GROQ_API_KEY else None)
        self.url = url or settings.GROQ_API_URL
        self.timeout = timeout or settings.AI_TIMEOUT_SECONDS
        self.transport = transport

    def _payload(self, prompt: str, **options: Any) -> Dict[str, Any]:
        return {
            "model": options.get("model") or settings.GROQ_MODEL,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "max_tokens": options.get("max_tokens") or settings.GROQ_MAX_TOKENS,
            "temperature": options.get("temperature", settings.GROQ_TEMPERATURE),
            "response_format": {"type": "json_object"},
        }

    def generate(self, prompt: str, **options: Any) -> str:
        if not self.api_key or not self.url:
            raise UpstreamError("Missing Groq config. Set GROQ_API_KEY and GROQ_API_URL in your environment (.env).")
        headers = {"Content-Type": "application/json", "Authorization": f"Bearer {self.api_key}"}
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                resp = client.post(self.url, json=self._payload(prompt, **options), headers=headers)
        except httpx.HTTPError as e:
            logger.error("Groq request failed: %s", e)
            raise UpstreamError(f"Groq API unreachable: {e}")

        text = resp.text
        try:
            body = resp.json()
        except ValueError:
            body = None

        if not resp.is_success:
            error = body.get("error") if isinstance(body, dict) else None
            message = (error.get("message") if isinstance(error, dict) else error) or text or resp.reason_phrase
            logger.warning("Groq API error %s: %s", resp.status_code, message)
            raise UpstreamError(f"Groq API error: {message}", status=resp.status_code, details=body if body is not None else text)

        return extract_text(body, text)

def extract_text(body: Any, raw: str) -> str:
    """Pull generated text out of the common completion response shapes."""
    if not isinstance(body, dict):
        return raw
    choices = body.get("choices") or []
    if choices and isinstance(choices[0], dict):
        message = choices[0].get("message") or {}
        if message.get("content"):
            return message["content"]
        if choices[0].get("text"):
            return choices[0]["text"]
    if isinstance(body.get("output"), str):
        return body["output"]
    candidates = body.get("candidates") or []
    if candidates and isinstance(candidates[0], dict) and candidates[0].get("output"):
        return candidates[0]["output"]
    data = body.get("data") or []
    if data and isinstance(data[0], dict) and data[0].get("generated_text"):
        return data[0]["generated_text"]
    result = body.get("result")
    if isinstance(result, dict) and result.get("text"):
        return result["text"]
    return raw
