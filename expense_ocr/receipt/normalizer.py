import json
import re

from pydantic import ValidationError

from expense_ocr.receipt.base import ParsedReceipt
from expense_ocr.receipt.errors import MalformedModelOutput, UnvalidatedShape

_LEADING_FENCE = re.compile(r"```json\s*", re.IGNORECASE)


def _reject_constant(name: str):
    raise ValueError(f"non-finite number {name} is not valid JSON")


def strip_code_fences(raw_reply: str) -> str:
    """Drop the first ```json marker, every other ``` marker, and outer whitespace."""
    cleaned = _LEADING_FENCE.sub("", raw_reply, count=1)
    return cleaned.replace("```", "").strip()


def normalize(raw_reply: str) -> ParsedReceipt:
    cleaned = strip_code_fences(raw_reply or "")

    try:
        data = json.loads(cleaned, parse_constant=_reject_constant)
    except ValueError as e:
        raise MalformedModelOutput(cleaned) from e

    if not isinstance(data, dict):
        raise UnvalidatedShape(cleaned, [f"expected a JSON object, got {type(data).__name__}"])

    try:
        return ParsedReceipt.model_validate(data)
    except ValidationError as e:
        errors = [
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in e.errors()
        ]
        raise UnvalidatedShape(cleaned, errors) from e
