import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from loguru import logger
from openai import AsyncOpenAI

from tools.parsing import parse_json_object

CONFIDENCE_LEVELS = ("high", "medium", "low")

EXTRACTION_RULES = """EXTRACTION RULES:
1. ONLY extract information explicitly present in the provided content
2. Do NOT fabricate or guess information
3. Be conservative - if unsure, use null for the field
4. Confidence levels:
   - "high": clear, explicit information found
   - "medium": reasonable inference from context
   - "low": limited or unclear information

Return ONLY a single JSON object, no prose before or after it."""


@dataclass
class Extraction:
    """Structured fields pulled out of unstructured text."""
    data: Dict[str, Any] = field(default_factory=dict)
    confidence: str = "low"
    parsed: bool = False
    raw: str = ""
    error: Optional[str] = None


class LLMClient:
    """Language model client used for extraction and scoring."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
    ):
        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        self.model = model or os.getenv("OPENAI_MODEL", "gpt-4o-mini")
        self.base_url = base_url or os.getenv("OPENAI_BASE_URL") or None
        self._client: Optional[AsyncOpenAI] = None

        if not self.api_key:
            logger.warning("No OpenAI API key provided, using mock mode")

    @property
    def client(self) -> AsyncOpenAI:
        """Lazy-initialize the OpenAI client."""
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key, base_url=self.base_url)
        return self._client

    @property
    def is_mock(self) -> bool:
        return not self.api_key

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.2,
        max_tokens: int = 1000,
    ) -> str:
        """
        Run one chat completion and return the raw text.

        In mock mode an empty JSON object is returned so callers fall back
        to their own defaults.

        Raises:
            openai.OpenAIError: If the provider call fails
        """
        if self.is_mock:
            logger.info("Mock mode: returning empty completion")
            return "{}"

        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=temperature,
            max_tokens=max_tokens,
        )
        return response.choices[0].message.content or ""

    async def extract(
        self,
        text: str,
        schema: str,
        instructions: str = "",
        temperature: float = 0.2,
    ) -> Extraction:
        """
        Turn unstructured text into fields described by `schema`.

        Args:
            text: Unstructured content (search results, scraped page...)
            schema: Description of the JSON object to return
            instructions: Task-specific guidance prepended to the rules

        Returns:
            Extraction; `parsed` is False when the response held no usable
            JSON object, in which case `data` is empty and confidence low
        """
        system_prompt = f"{instructions}\n\n{EXTRACTION_RULES}\n\nJSON structure:\n{schema}".strip()
        raw = await self.complete(system_prompt, text, temperature=temperature)

        result = parse_json_object(raw)
        if not result.ok:
            logger.warning(f"Extraction response not parseable: {result.error}")
            return Extraction(raw=raw, error=result.error)

        confidence = str(result.get("confidence") or "low").lower()
        if confidence not in CONFIDENCE_LEVELS:
            confidence = "low"

        return Extraction(data=result.value, confidence=confidence, parsed=True, raw=raw)
