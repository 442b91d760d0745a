import logging
import math
from dataclasses import dataclass
from datetime import date as date_type
from decimal import Decimal
from enum import Enum

from expense_ocr import config
from expense_ocr.receipt.base import (
    ExpenseDraft,
    FieldExtractor,
    ParsedReceipt,
    ReceiptLineItem,
    TextRecognizer,
)
from expense_ocr.receipt.errors import ExtractionError, TotalMismatch
from expense_ocr.receipt.normalizer import normalize, strip_code_fences

logger = logging.getLogger("expense_ocr")


class PipelineState(str, Enum):
    RECOGNIZING = "recognizing"
    EXTRACTING = "extracting"
    NORMALIZING = "normalizing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class PipelineRun:
    ocr_text: str
    parsed: ParsedReceipt
    draft: ExpenseDraft


def format_price(price: float) -> str:
    """Render a price the way JavaScript's Number.prototype.toString would.

    2.0 -> "2", 3.5 -> "3.5", 1e-7 -> "1e-7", 1e21 -> "1e+21".
    """
    price = float(price)
    if math.isnan(price):
        return "NaN"
    if math.isinf(price):
        return "Infinity" if price > 0 else "-Infinity"
    if price == 0:
        return "0"
    if price < 0:
        return "-" + format_price(-price)

    # repr gives the shortest round-tripping digits, as JavaScript does
    _, digit_tuple, exponent = Decimal(repr(price)).normalize().as_tuple()
    digits = "".join(str(d) for d in digit_tuple)
    k = len(digits)
    n = k + exponent  # position of the decimal point relative to the digits

    if k <= n <= 21:
        return digits + "0" * (n - k)
    if 0 < n <= 21:
        return f"{digits[:n]}.{digits[n:]}"
    if -6 < n <= 0:
        return "0." + "0" * -n + digits

    e = n - 1
    sign = "+" if e >= 0 else "-"
    mantissa = digits if k == 1 else f"{digits[0]}.{digits[1:]}"
    return f"{mantissa}e{sign}{abs(e)}"


def format_description(items: list[ReceiptLineItem]) -> str:
    return "; ".join(f"{item.description}: ${format_price(item.price)}" for item in items)


def check_totals(parsed: ParsedReceipt, tolerance: float) -> str | None:
    """Return a warning when the total and the item prices disagree, else None."""
    items_sum = round(sum(item.price for item in parsed.items), 2)
    if abs(parsed.total - items_sum) > tolerance:
        return f"Total {format_price(parsed.total)} differs from item sum {format_price(items_sum)}"
    return None


def to_expense_draft(
    parsed: ParsedReceipt,
    expense_date: date_type | None = None,
    tolerance: float | None = None,
    strict_totals: bool | None = None,
) -> ExpenseDraft:
    tolerance = config.TOTAL_TOLERANCE if tolerance is None else tolerance
    strict_totals = config.STRICT_TOTALS if strict_totals is None else strict_totals

    warnings = []
    mismatch = check_totals(parsed, tolerance)
    if mismatch:
        if strict_totals:
            raise TotalMismatch(parsed.total, round(sum(i.price for i in parsed.items), 2))
        warnings.append(mismatch)

    return ExpenseDraft(
        merchant=parsed.merchant,
        amount=parsed.total,
        category=parsed.category,
        date=(expense_date or date_type.today()).isoformat(),
        description=format_description(parsed.items),
        warnings=warnings,
    )


async def extract_receipt(extractor: FieldExtractor, source_text: str) -> tuple[ParsedReceipt, str]:
    """Run field extraction and normalization; also return the fence-stripped reply."""
    reply = await extractor.extract_fields(source_text)
    return normalize(reply.raw_text), strip_code_fences(reply.raw_text)


class ReceiptPipeline:
    """Image -> OCR text -> model reply -> ParsedReceipt -> ExpenseDraft.

    Stages run strictly one after another and the first failure ends the run.
    Instances hold no per-request state, so one pipeline can serve concurrent callers.
    """

    def __init__(
        self,
        recognizer: TextRecognizer,
        extractor: FieldExtractor,
        tolerance: float | None = None,
        strict_totals: bool | None = None,
    ):
        self.recognizer = recognizer
        self.extractor = extractor
        self.tolerance = tolerance
        self.strict_totals = strict_totals

    async def run(self, image_base64: str, expense_date: date_type | None = None) -> PipelineRun:
        state = PipelineState.RECOGNIZING
        try:
            self._log_state(state)
            recognized = await self.recognizer.recognize_text(image_base64)

            state = PipelineState.EXTRACTING
            self._log_state(state, ocr_chars=len(recognized.text))
            reply = await self.extractor.extract_fields(recognized.text)

            state = PipelineState.NORMALIZING
            self._log_state(state)
            parsed = normalize(reply.raw_text)
            draft = to_expense_draft(parsed, expense_date, self.tolerance, self.strict_totals)
        except ExtractionError as e:
            logger.warning(
                f"Receipt pipeline failed while {state.value}: {e.message}",
                extra={"extra_data": {"state": PipelineState.FAILED.value, "failed_at": state.value, "kind": e.kind}},
            )
            raise

        self._log_state(PipelineState.DONE, items_count=len(parsed.items), warnings=len(draft.warnings))
        return PipelineRun(ocr_text=recognized.text, parsed=parsed, draft=draft)

    async def extract_expense_from_image(
        self, image_base64: str, expense_date: date_type | None = None
    ) -> ExpenseDraft:
        run = await self.run(image_base64, expense_date)
        return run.draft

    @staticmethod
    def _log_state(state: PipelineState, **fields) -> None:
        logger.debug(f"Receipt pipeline {state.value}", extra={"extra_data": {"state": state.value, **fields}})
