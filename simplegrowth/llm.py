"""OpenAI chat-completion helpers shared by the AI features."""
import json
import logging
import re
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from simplegrowth.config import settings

logger = logging.getLogger(__name__)

JSON_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")


def get_openai_client() -> AsyncOpenAI:
    """Get the OpenAI client."""
    return AsyncOpenAI(api_key=settings.OPENAI_API_KEY)


async def complete(
    messages: List[Dict[str, Any]],
    max_tokens: Optional[int] = None,
    temperature: Optional[float] = None,
) -> str:
    """
    Run one chat completion and return the text of the first choice.

    Errors from the provider propagate; callers decide how to degrade.
    """
    client = get_openai_client()

    kwargs = {
        "model": settings.OPENAI_MODEL,
        "messages": messages,
        "max_tokens": max_tokens or settings.OPENAI_MAX_TOKENS,
    }
    if temperature is not None:
        kwargs["temperature"] = temperature

    response = await client.chat.completions.create(**kwargs)
    return response.choices[0].message.content or ""


def extract_json_object(text: str) -> Optional[Dict[str, Any]]:
    """
    Pull the outermost {...} block out of a model reply and parse it.

    Returns None when there is no block or it is not valid JSON.
    """
    match = JSON_OBJECT_PATTERN.search(text or "")
    if not match:
        return None
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError:
        logger.warning("Model reply contained malformed JSON")
        return None
    return parsed if isinstance(parsed, dict) else None
