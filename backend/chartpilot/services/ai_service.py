"""
Chat completion service using Groq (primary) and Gemini (fallback).

Pipeline stages only see the `AIService` contract; tests substitute a
scripted implementation.
"""
import os
import re
import json
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, List, Literal, Optional
from groq import AsyncGroq
from pydantic import BaseModel, Field
from chartpilot.core.config import Settings

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```(?:json|JSON)?\s*|\s*```$")


class AIServiceError(Exception):
    """The AI service could not produce a usable reply."""


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    messages: List[ChatMessage]
    system_prompt: Optional[str] = None
    temperature: float = Field(default=0.3, ge=0, le=2)
    max_tokens: int = Field(default=800, ge=1)

    @classmethod
    def single(cls, content: str, system_prompt: str, temperature: float = 0.3, max_tokens: int = 800) -> "ChatRequest":
        return cls(
            messages=[ChatMessage(role="user", content=content)],
            system_prompt=system_prompt,
            temperature=temperature,
            max_tokens=max_tokens,
        )


class ChatResponse(BaseModel):
    content: str
    provider: str


class AIService(ABC):
    """Remote language model behind a chat-completion interface."""

    @abstractmethod
    async def chat(self, request: ChatRequest) -> ChatResponse:
        """Return the model reply or raise AIServiceError."""

    @abstractmethod
    async def validate_connection(self) -> bool:
        """Whether at least one provider is usable."""


def strip_code_fences(content: str) -> str:
    """Remove ```json ... ``` wrapping that models like to add around JSON."""
    return _FENCE_RE.sub("", content.strip()).strip()


def parse_json_content(content: str) -> Any:
    """
    Parse a model reply as JSON.

    Tolerates code fences and chatter around a single JSON object.

    Raises:
        AIServiceError: if no JSON value can be recovered
    """
    text = strip_code_fences(content or "")
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        try:
            return json.loads(text[start:end + 1])
        except json.JSONDecodeError:
            pass
    raise AIServiceError(f"AI reply is not valid JSON: {text[:120]!r}")


async def chat_json(service: AIService, request: ChatRequest, timeout: Optional[float]) -> Any:
    """
    Send a request and parse the reply as JSON within `timeout` seconds.

    Every failure mode (provider error, timeout, malformed reply) surfaces
    as AIServiceError so callers have a single fallback trigger.
    """
    try:
        response = await asyncio.wait_for(service.chat(request), timeout=timeout)
    except AIServiceError:
        raise
    except asyncio.TimeoutError as e:
        raise AIServiceError(f"AI call timed out after {timeout}s") from e
    except Exception as e:
        raise AIServiceError(f"AI call failed: {e}") from e
    return parse_json_content(response.content)


class GroqGeminiService(AIService):
    """
    AI service with automatic fallback.

    Order: Groq -> Gemini -> AIServiceError
    """

    def __init__(self, settings: Settings, groq_api_key: Optional[str] = None, gemini_api_key: Optional[str] = None):
        self.settings = settings
        self._groq_client: Optional[AsyncGroq] = None
        self._gemini_model = None

        if groq_api_key:
            self._groq_client = AsyncGroq(api_key=groq_api_key)
            logger.info("Groq AI client initialized")

        if gemini_api_key:
            try:
                # Lazy import: only needed when a Gemini key is configured
                import google.generativeai as genai
                genai.configure(api_key=gemini_api_key)
                self._gemini_model = genai.GenerativeModel(settings.gemini_model)
                logger.info(f"Gemini AI fallback initialized with model: {settings.gemini_model}")
            except Exception as e:
                logger.warning(f"Gemini initialization failed: {e}")

    @classmethod
    def from_env(cls, settings: Settings) -> "GroqGeminiService":
        return cls(
            settings,
            groq_api_key=os.getenv("GROQ_API_KEY"),
            gemini_api_key=os.getenv("GEMINI_API_KEY"),
        )

    @property
    def configured(self) -> bool:
        return self._groq_client is not None or self._gemini_model is not None

    async def _call_groq(self, request: ChatRequest) -> Optional[str]:
        if not self._groq_client:
            return None

        messages = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        messages.extend({"role": m.role, "content": m.content} for m in request.messages)

        response = await self._groq_client.chat.completions.create(
            model=self.settings.groq_model,
            messages=messages,
            max_tokens=request.max_tokens,
            temperature=request.temperature,
        )
        return response.choices[0].message.content

    async def _call_gemini(self, request: ChatRequest) -> Optional[str]:
        if not self._gemini_model:
            return None

        conversation = "\n\n".join(m.content for m in request.messages)
        full_prompt = f"{request.system_prompt}\n\n{conversation}" if request.system_prompt else conversation
        response = await self._gemini_model.generate_content_async(
            full_prompt,
            generation_config={
                "temperature": request.temperature,
                "max_output_tokens": request.max_tokens,
            },
        )
        return response.text

    async def chat(self, request: ChatRequest) -> ChatResponse:
        if not self.configured:
            raise AIServiceError("No AI providers configured (set GROQ_API_KEY or GEMINI_API_KEY)")

        try:
            result = await self._call_groq(request)
            if result:
                logger.debug("AI response from Groq")
                return ChatResponse(content=result, provider="groq")
        except Exception as e:
            error_str = str(e).lower()
            if "rate" in error_str or "limit" in error_str or "429" in error_str:
                logger.warning(f"Groq rate limited, trying Gemini fallback: {e}")
            else:
                logger.warning(f"Groq error, trying fallback: {e}")

        try:
            result = await self._call_gemini(request)
            if result:
                logger.info("AI response from Gemini (fallback)")
                return ChatResponse(content=result, provider="gemini")
        except Exception as e:
            logger.error(f"Gemini fallback also failed: {e}")

        raise AIServiceError("All AI providers failed to respond")

    async def validate_connection(self) -> bool:
        return self.configured
