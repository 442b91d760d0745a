from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RecognitionResult(BaseModel):
    text: str = ""  # empty means the image had no readable text


class ExtractionPrompt(BaseModel):
    model_config = ConfigDict(frozen=True)

    schema_version: str
    instruction_schema: str
    source_text: str

    @property
    def text(self) -> str:
        return f"\n{self.instruction_schema}\n\nOCR text:\n{self.source_text}\n"


class ExtractionReply(BaseModel):
    raw_text: str = ""


class ReceiptLineItem(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    description: str
    price: float  # display units (e.g. 3.50 for $3.50)


class ParsedReceipt(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    merchant: str = ""
    total: float
    items: list[ReceiptLineItem]
    category: str = ""  # requested from the allowed labels, not enforced

    @field_validator("merchant", "category", mode="before")
    @classmethod
    def null_to_empty(cls, v):
        return "" if v is None else v


class ExpenseDraft(BaseModel):
    merchant: str
    amount: float
    category: str
    date: str  # ISO date, YYYY-MM-DD
    description: str
    warnings: list[str] = Field(default_factory=list)


class TextRecognizer(Protocol):
    async def recognize_text(self, image_base64: str) -> RecognitionResult: ...


class FieldExtractor(Protocol):
    async def extract_fields(self, source_text: str) -> ExtractionReply: ...
