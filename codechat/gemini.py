"""
Streaming chat completions against Google Gemini.

Chunks are yielded as they arrive. Any failure of the remote call surfaces as
a single `UpstreamModelError`; chunks already yielded stay delivered and the
call is not retried.
"""
import logging
import os
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage
from langchain_google_genai import ChatGoogleGenerativeAI
from langsmith import traceable

from codechat.config import MAX_OUTPUT_TOKENS, TEMPERATURE, TOP_K, TOP_P, resolve_model_name
from codechat.errors import UpstreamModelError

logger = logging.getLogger(__name__)


def provider_role(role: str) -> str:
    """Gemini calls the assistant side of a chat `model`."""
    return "user" if role == "user" else "model"


def build_history(turns: Sequence[Dict[str, str]]) -> List[BaseMessage]:
    messages: List[BaseMessage] = []
    for turn in turns:
        if provider_role(turn["role"]) == "user":
            messages.append(HumanMessage(content=turn["content"]))
        else:
            messages.append(AIMessage(content=turn["content"]))
    return messages


def chunk_text(content: Any) -> str:
    if isinstance(content, list):
        return "".join(
            item if isinstance(item, str) else (item.get("text", "") if isinstance(item, dict) else str(item))
            for item in content
        )
    return str(content) if content else ""


class GeminiCompletionClient:
    def __init__(self, api_key: str, model_name: Optional[str] = None, model: Any = None):
        self.model_name = model_name or resolve_model_name(os.environ)
        self.model = model or ChatGoogleGenerativeAI(
            model=self.model_name,
            google_api_key=api_key,
            temperature=TEMPERATURE,
            top_p=TOP_P,
            top_k=TOP_K,
            max_output_tokens=MAX_OUTPUT_TOKENS,
            max_retries=1,  # one attempt, no retries
        )

    @traceable(name="Gemini Stream", run_type="llm")
    async def stream(self, prompt: str, history: Sequence[Dict[str, str]] = ()) -> AsyncIterator[str]:
        messages = build_history(history)
        messages.append(HumanMessage(content=prompt))
        try:
            async for chunk in self.model.astream(messages):
                text = chunk_text(getattr(chunk, "content", chunk))
                if text:
                    yield text
        except UpstreamModelError:
            raise
        except Exception as e:
            logger.error("Gemini API error: %s", e)
            raise UpstreamModelError(f"Gemini API Error: {e}") from e
