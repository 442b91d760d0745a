import logging

from fastapi import HTTPException

from expense_ocr.receipt import factory
from expense_ocr.receipt.base import FieldExtractor, TextRecognizer
from expense_ocr.receipt.pipeline import ReceiptPipeline

logger = logging.getLogger("expense_ocr")


def _unavailable(e: ValueError) -> HTTPException:
    logger.error(f"Receipt extraction config error: {e}")
    return HTTPException(status_code=503, detail="Receipt scanning is not available")


def get_text_recognizer() -> TextRecognizer:
    try:
        return factory.get_text_recognizer()
    except ValueError as e:
        raise _unavailable(e)


def get_field_extractor() -> FieldExtractor:
    try:
        return factory.get_field_extractor()
    except ValueError as e:
        raise _unavailable(e)


def get_receipt_pipeline() -> ReceiptPipeline:
    try:
        return factory.get_receipt_pipeline()
    except ValueError as e:
        raise _unavailable(e)
