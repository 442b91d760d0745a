from expense_ocr.receipt.base import ExpenseDraft, ParsedReceipt
from expense_ocr.receipt.errors import ExtractionError, UnvalidatedShape, UpstreamError


def serialize_parsed_receipt(parsed: ParsedReceipt) -> dict:
    return {
        "merchant": parsed.merchant,
        "total": parsed.total,
        "items": [
            {"description": item.description, "price": item.price}
            for item in parsed.items
        ],
        "category": parsed.category,
    }


def serialize_draft(draft: ExpenseDraft) -> dict:
    return {
        "merchant": draft.merchant,
        "amount": draft.amount,
        "category": draft.category,
        "date": draft.date,
        "description": draft.description,
        "warnings": draft.warnings,
    }


def serialize_extraction_error(error: ExtractionError) -> dict:
    body = {"error": error.message, "kind": error.kind}
    if error.detail is not None:
        body["detail"] = error.detail
    if isinstance(error, UpstreamError):
        body["service"] = error.service
        body["status"] = error.status_code
    if isinstance(error, UnvalidatedShape):
        body["errors"] = error.errors
    return body
