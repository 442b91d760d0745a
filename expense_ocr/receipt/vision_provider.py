import httpx

from expense_ocr import config
from expense_ocr.receipt.base import RecognitionResult
from expense_ocr.receipt.errors import InvalidInput, UpstreamError
from expense_ocr.receipt.http import post_json, read_json_object


class GoogleVisionTextRecognizer:
    """OCR through the Google Cloud Vision images:annotate endpoint."""

    def __init__(
        self,
        api_key: str | None = None,
        endpoint: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = config.VISION_API_KEY if api_key is None else api_key
        if not self.api_key:
            raise ValueError("VISION_API_KEY is not configured")
        self.endpoint = endpoint or config.VISION_ENDPOINT
        self.timeout = timeout
        self.max_retries = max_retries
        self.transport = transport

    async def recognize_text(self, image_base64: str) -> RecognitionResult:
        if not image_base64:
            raise InvalidInput("Missing imageBase64")

        payload = {
            "requests": [
                {
                    "image": {"content": image_base64},
                    "features": [{"type": "TEXT_DETECTION", "maxResults": 1}],
                }
            ]
        }
        resp = await post_json(
            "vision",
            self.endpoint,
            payload,
            params={"key": self.api_key},
            timeout=self.timeout,
            max_retries=self.max_retries,
            transport=self.transport,
        )
        data = read_json_object("vision", resp)

        responses = data.get("responses") or [{}]
        if not isinstance(responses, list) or not isinstance(responses[0], dict):
            raise UpstreamError("vision", resp.status_code, resp.text)
        first = responses[0]

        if "error" in first:
            error = first["error"]
            message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            raise UpstreamError("vision", resp.status_code, message)

        annotation = first.get("fullTextAnnotation") or {}
        text = (annotation.get("text") or "") if isinstance(annotation, dict) else None
        if not isinstance(text, str):
            raise UpstreamError("vision", resp.status_code, resp.text)
        return RecognitionResult(text=text)
