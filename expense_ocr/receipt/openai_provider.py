import logging

import openai
from agents import Agent, OpenAIResponsesModel, Runner

from expense_ocr import config
from expense_ocr.receipt.base import ExtractionReply
from expense_ocr.receipt.errors import InvalidInput, UpstreamError
from expense_ocr.receipt.http import RETRYABLE_STATUS_CODES
from expense_ocr.receipt.prompt import build_extraction_prompt

logger = logging.getLogger("expense_ocr")

INSTRUCTIONS = """\
You are a receipt parser. You are given the raw OCR text of a receipt and a description of the JSON to return.

Rules:
- Follow the requested JSON structure exactly
- price is the total price for that line item, as a decimal number with full precision
- total is the grand total shown on the receipt
- Do NOT include tax/tips/fees as items
- Keep descriptions concise but recognizable"""


class OpenAIFieldExtractor:
    """Field extraction using the OpenAI Agents SDK, returning the reply text unparsed."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
    ):
        api_key = config.OPENAI_API_KEY if api_key is None else api_key
        if not api_key:
            raise ValueError("OPENAI_API_KEY is not configured")
        self.max_retries = config.UPSTREAM_MAX_RETRIES if max_retries is None else max_retries

        # SDK retries are off; the retry loop below only retries transport failures and 502/503/504
        self.client = openai.AsyncOpenAI(
            api_key=api_key,
            timeout=config.UPSTREAM_TIMEOUT_SECONDS if timeout is None else timeout,
            max_retries=0,
        )
        self.agent = Agent(
            name="Receipt Field Extractor",
            instructions=INSTRUCTIONS,
            model=OpenAIResponsesModel(model=model or config.OPENAI_MODEL, openai_client=self.client),
        )

    async def extract_fields(self, source_text: str) -> ExtractionReply:
        if not source_text:
            raise InvalidInput("Missing ocrText")

        prompt = build_extraction_prompt(source_text)
        attempt = 0
        while True:
            attempt += 1
            try:
                result = await Runner.run(self.agent, input=prompt.text)
                break
            except openai.APIStatusError as e:
                if e.status_code in RETRYABLE_STATUS_CODES and attempt <= self.max_retries:
                    logger.warning(
                        f"openai returned {e.status_code}, retrying",
                        extra={"extra_data": {"service": "openai", "attempt": attempt}},
                    )
                    continue
                raise UpstreamError("openai", e.status_code, str(e)) from e
            except openai.APIConnectionError as e:
                if attempt <= self.max_retries:
                    logger.warning(
                        f"openai call failed, retrying: {e!r}",
                        extra={"extra_data": {"service": "openai", "attempt": attempt}},
                    )
                    continue
                raise UpstreamError("openai", None, repr(e)) from e

        return ExtractionReply(raw_text=str(result.final_output or ""))
