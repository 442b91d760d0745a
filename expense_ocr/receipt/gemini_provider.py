import logging

import httpx

from expense_ocr import config
from expense_ocr.receipt.base import ExtractionReply
from expense_ocr.receipt.errors import InvalidInput, UpstreamError
from expense_ocr.receipt.http import post_json, read_json_object
from expense_ocr.receipt.prompt import build_extraction_prompt

logger = logging.getLogger("expense_ocr")


class GeminiFieldExtractor:
    """Field extraction through the Gemini generateContent REST endpoint."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        temperature: float | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = config.GEMINI_API_KEY if api_key is None else api_key
        if not self.api_key:
            raise ValueError("GEMINI_API_KEY is not configured")
        self.model = model or config.GEMINI_MODEL
        self.temperature = config.GEMINI_TEMPERATURE if temperature is None else temperature
        self.base_url = (base_url or config.GEMINI_BASE_URL).rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.transport = transport

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    async def extract_fields(self, source_text: str) -> ExtractionReply:
        if not source_text:
            raise InvalidInput("Missing ocrText")

        prompt = build_extraction_prompt(source_text)
        payload = {"contents": [{"parts": [{"text": prompt.text}]}]}
        if self.temperature is not None:
            payload["generationConfig"] = {"temperature": self.temperature}

        resp = await post_json(
            "gemini",
            self.endpoint,
            payload,
            params={"key": self.api_key},
            timeout=self.timeout,
            max_retries=self.max_retries,
            transport=self.transport,
        )
        data = read_json_object("gemini", resp)

        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            logger.warning(
                "Gemini reply had no candidate text",
                extra={"extra_data": {"model": self.model, "prompt_feedback": data.get("promptFeedback")}},
            )
            text = ""

        if text is None:
            text = ""
        if not isinstance(text, str):
            raise UpstreamError("gemini", resp.status_code, resp.text)
        return ExtractionReply(raw_text=text)
