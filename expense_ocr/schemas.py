from pydantic import BaseModel, Field


# --- OCR ---

class RecognizeIn(BaseModel):
    image_base64: str = Field("", alias="imageBase64")

    model_config = {"populate_by_name": True}


# --- Field extraction ---

class ExtractIn(BaseModel):
    ocr_text: str = Field("", alias="ocrText")

    model_config = {"populate_by_name": True}
