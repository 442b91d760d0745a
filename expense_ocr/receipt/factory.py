from expense_ocr import config
from expense_ocr.receipt.base import FieldExtractor, TextRecognizer
from expense_ocr.receipt.gemini_provider import GeminiFieldExtractor
from expense_ocr.receipt.pipeline import ReceiptPipeline
from expense_ocr.receipt.vision_provider import GoogleVisionTextRecognizer


def get_text_recognizer() -> TextRecognizer:
    """Return the OCR provider."""
    return GoogleVisionTextRecognizer()


def get_field_extractor() -> FieldExtractor:
    """Return the configured field extraction provider."""
    provider = config.FIELD_EXTRACTION_PROVIDER
    if provider == "gemini":
        return GeminiFieldExtractor()
    if provider == "openai":
        from expense_ocr.receipt.openai_provider import OpenAIFieldExtractor

        return OpenAIFieldExtractor()
    raise ValueError(f"Unknown field extraction provider: {provider}")


def get_receipt_pipeline() -> ReceiptPipeline:
    return ReceiptPipeline(get_text_recognizer(), get_field_extractor())
