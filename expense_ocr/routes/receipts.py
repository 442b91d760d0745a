import base64
import logging
from datetime import date as date_type

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile

from expense_ocr.deps import get_field_extractor, get_receipt_pipeline, get_text_recognizer
from expense_ocr.ratelimit import limiter
from expense_ocr.receipt.base import FieldExtractor, TextRecognizer
from expense_ocr.receipt.pipeline import ReceiptPipeline, extract_receipt
from expense_ocr.schemas import ExtractIn, RecognizeIn
from expense_ocr.serializers import serialize_draft, serialize_parsed_receipt

logger = logging.getLogger("expense_ocr")
router = APIRouter()

MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MB
ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/png", "image/webp", "image/heic", "image/heif"}
MAX_IMAGE_BASE64_LENGTH = 4 * -(-MAX_FILE_SIZE // 3)  # base64 length of a MAX_FILE_SIZE image


@router.post("/recognize")
@limiter.limit("60/hour")
async def recognize(
    request: Request,
    data: RecognizeIn,
    recognizer: TextRecognizer = Depends(get_text_recognizer),
):
    if len(data.image_base64) > MAX_IMAGE_BASE64_LENGTH:
        raise HTTPException(status_code=400, detail="Image too large. Maximum size is 10 MB.")

    result = await recognizer.recognize_text(data.image_base64)
    logger.info("Receipt text recognized", extra={"extra_data": {"ocr_chars": len(result.text)}})
    return {"ocrText": result.text}


@router.post("/extract")
@limiter.limit("60/hour")
async def extract(
    request: Request,
    data: ExtractIn,
    extractor: FieldExtractor = Depends(get_field_extractor),
):
    parsed, cleaned = await extract_receipt(extractor, data.ocr_text)
    logger.info("Receipt fields extracted", extra={"extra_data": {"items_count": len(parsed.items)}})
    return {"parsed": serialize_parsed_receipt(parsed), "rawOutput": cleaned}


@router.post("/scan-receipt")
@limiter.limit("30/hour")
async def scan_receipt(
    request: Request,
    file: UploadFile = File(...),
    date: str | None = Form(None),
    pipeline: ReceiptPipeline = Depends(get_receipt_pipeline),
):
    if file.content_type not in ALLOWED_CONTENT_TYPES:
        raise HTTPException(status_code=400, detail="Unsupported image format. Use JPEG, PNG, WebP or HEIC.")

    expense_date = None
    if date:
        try:
            expense_date = date_type.fromisoformat(date)
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid date, expected YYYY-MM-DD")

    image_bytes = await file.read()
    if len(image_bytes) == 0:
        raise HTTPException(status_code=400, detail="Empty file")
    if len(image_bytes) > MAX_FILE_SIZE:
        raise HTTPException(status_code=400, detail="Image too large. Maximum size is 10 MB.")

    run = await pipeline.run(base64.b64encode(image_bytes).decode("utf-8"), expense_date)

    logger.info(
        "Receipt scanned",
        extra={"extra_data": {"items_count": len(run.parsed.items), "warnings": run.draft.warnings}},
    )

    return {
        "draft": serialize_draft(run.draft),
        "parsed": serialize_parsed_receipt(run.parsed),
        "ocrText": run.ocr_text,
    }
