from expense_ocr.receipt.base import ExtractionPrompt

CATEGORIES = ("Travel", "Meals", "Office Supplies", "Other")

SCHEMAS = {
    "v1": """\
Respond **only** with valid JSON (no extra text) matching this structure:

{{
  "merchant": string,                  // e.g. "Best Buy"
  "total": number,                     // e.g. 106.49
  "items": [
    {{ "description": string, "price": number }},
    ...
  ],
  "category": string                   // one of {categories}
}}
""",
}

DEFAULT_SCHEMA_VERSION = "v1"


def build_extraction_prompt(source_text: str, schema_version: str = DEFAULT_SCHEMA_VERSION) -> ExtractionPrompt:
    """Build the instruction block plus OCR text sent to the language model."""
    if schema_version not in SCHEMAS:
        raise ValueError(f"Unknown prompt schema version: {schema_version}")

    labels = ", ".join(f'"{c}"' for c in CATEGORIES)
    return ExtractionPrompt(
        schema_version=schema_version,
        instruction_schema=SCHEMAS[schema_version].format(categories=labels),
        source_text=source_text,
    )
