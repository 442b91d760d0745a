class ExtractionError(Exception):
    """Base class for every failure the extraction pipeline reports."""

    kind = "extraction_error"

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(message)
        self.message = message
        self.detail = detail


class InvalidInput(ExtractionError):
    kind = "invalid_input"


class UpstreamError(ExtractionError):
    """The OCR or model service answered with a failure, or never answered.

    ``status_code`` is None when the call failed at the transport level
    (timeout, connection refused) after all retries.
    """

    kind = "upstream_error"

    def __init__(self, service: str, status_code: int | None, body: str):
        super().__init__(f"{service} request failed", detail=body)
        self.service = service
        self.status_code = status_code
        self.body = body


class MalformedModelOutput(ExtractionError):
    kind = "malformed_model_output"

    def __init__(self, cleaned_text: str):
        super().__init__("Failed to parse JSON from model reply", detail=cleaned_text)
        self.cleaned_text = cleaned_text


class UnvalidatedShape(ExtractionError):
    """The reply parsed as JSON but does not look like a receipt."""

    kind = "unvalidated_shape"

    def __init__(self, cleaned_text: str, errors: list[str]):
        super().__init__("Model reply does not match the receipt shape", detail=cleaned_text)
        self.cleaned_text = cleaned_text
        self.errors = errors


class TotalMismatch(ExtractionError):
    kind = "total_mismatch"

    def __init__(self, total: float, items_sum: float):
        super().__init__(
            f"Receipt total {total} does not match the sum of item prices {items_sum}",
        )
        self.total = total
        self.items_sum = items_sum
