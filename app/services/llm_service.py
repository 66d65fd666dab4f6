"""
LLM Service for AI-Powered Content Recommendations

Thin wrapper around the Anthropic Messages API. Constructed explicitly and
passed to the services that need it, so tests can hand in a fake client.
"""
from typing import Optional

from anthropic import AsyncAnthropic

from app.config import get_settings
from app.utils.logger import log

settings = get_settings()


class LLMService:
    """
    Generates raw text from a prompt and optional system instruction.

    The output is free text; callers are responsible for parsing it.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
        enabled: Optional[bool] = None,
        client=None,
    ):
        self.model = model or settings.llm_model
        self.max_tokens = max_tokens or settings.llm_max_tokens
        api_key = api_key if api_key is not None else settings.anthropic_api_key
        enabled = settings.enable_llm_insights if enabled is None else enabled

        if client is not None:
            self.client = client
            self.enabled = enabled
        elif enabled and api_key:
            self.client = AsyncAnthropic(
                api_key=api_key,
                timeout=timeout or settings.request_timeout_seconds,
                max_retries=0,
            )
            self.enabled = True
            log.info(f"LLM Service initialized with {self.model}")
        else:
            log.info("LLM recommendations disabled (no API key or feature disabled)")
            self.client = None
            self.enabled = False

    async def generate_content(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Send one user prompt and return the concatenated text blocks"""
        if not self.enabled:
            raise RuntimeError("LLM service is not configured")

        kwargs = {
            "model": self.model,
            "max_tokens": max_tokens or self.max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_instruction:
            kwargs["system"] = system_instruction

        response = await self.client.messages.create(**kwargs)
        return "".join(
            block.text for block in response.content
            if getattr(block, "type", "text") == "text"
        )

    def is_available(self) -> bool:
        """Check if LLM service is available"""
        return self.enabled
