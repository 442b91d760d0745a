import pytest
from fastapi.testclient import TestClient

from expense_ocr import config, deps
from expense_ocr.main import app
from expense_ocr.receipt.errors import UpstreamError
from expense_ocr.receipt.pipeline import ReceiptPipeline


@pytest.fixture
def client():
    yield TestClient(app)
    app.dependency_overrides.clear()


def use_fakes(recognizer=None, extractor=None):
    if recognizer is not None:
        app.dependency_overrides[deps.get_text_recognizer] = lambda: recognizer
    if extractor is not None:
        app.dependency_overrides[deps.get_field_extractor] = lambda: extractor
    if recognizer is not None and extractor is not None:
        pipeline = ReceiptPipeline(recognizer, extractor, tolerance=0.01, strict_totals=False)
        app.dependency_overrides[deps.get_receipt_pipeline] = lambda: pipeline


def test_health(client):
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_recognize_returns_ocr_text(client, fake_recognizer, scenario_a_text):
    recognizer = fake_recognizer(text=scenario_a_text)
    use_fakes(recognizer=recognizer)

    resp = client.post("/api/recognize", json={"imageBase64": "aW1hZ2U="})

    assert resp.status_code == 200
    assert resp.json() == {"ocrText": scenario_a_text}
    assert recognizer.calls == ["aW1hZ2U="]


def test_recognize_missing_image_is_400(client, transport):
    from expense_ocr.receipt.vision_provider import GoogleVisionTextRecognizer

    mock = transport()
    use_fakes(recognizer=GoogleVisionTextRecognizer(api_key="test-key", transport=mock))

    resp = client.post("/api/recognize", json={})

    assert resp.status_code == 400
    assert resp.json()["kind"] == "invalid_input"
    assert mock.requests == []


def test_recognize_upstream_error_is_502(client, fake_recognizer, upstream_403):
    use_fakes(recognizer=fake_recognizer(error=upstream_403))

    resp = client.post("/api/recognize", json={"imageBase64": "aW1hZ2U="})

    assert resp.status_code == 502
    body = resp.json()
    assert body["kind"] == "upstream_error"
    assert body["service"] == "vision"
    assert body["status"] == 403
    assert "API key not valid" in body["detail"]


def test_recognize_unconfigured_is_503(client, monkeypatch):
    monkeypatch.setattr(config, "VISION_API_KEY", "")

    resp = client.post("/api/recognize", json={"imageBase64": "aW1hZ2U="})

    assert resp.status_code == 503
    assert resp.json() == {"detail": "Receipt scanning is not available"}


def test_extract_returns_parsed_and_cleaned_output(client, fake_extractor, scenario_a_text, scenario_a_reply):
    extractor = fake_extractor(reply=scenario_a_reply)
    use_fakes(extractor=extractor)

    resp = client.post("/api/extract", json={"ocrText": scenario_a_text})

    assert resp.status_code == 200
    body = resp.json()
    assert body["parsed"] == {
        "merchant": "STORE X",
        "total": 5.5,
        "items": [{"description": "Milk", "price": 3.5}, {"description": "Bread", "price": 2.0}],
        "category": "Other",
    }
    assert not body["rawOutput"].startswith("```")
    assert extractor.calls == [scenario_a_text]


def test_extract_prose_reply_is_502_with_detail(client, fake_extractor):
    use_fakes(extractor=fake_extractor(reply="  No receipt here.  "))

    resp = client.post("/api/extract", json={"ocrText": "hello"})

    assert resp.status_code == 502
    assert resp.json()["kind"] == "malformed_model_output"
    assert resp.json()["detail"] == "No receipt here."


def test_extract_missing_items_is_502_shape_error(client, fake_extractor):
    use_fakes(extractor=fake_extractor(reply='{"merchant": "Cafe", "total": 3}'))

    resp = client.post("/api/extract", json={"ocrText": "Cafe 3.00"})

    assert resp.status_code == 502
    body = resp.json()
    assert body["kind"] == "unvalidated_shape"
    assert body["errors"]


def test_scan_receipt_runs_full_pipeline(client, fake_recognizer, fake_extractor, scenario_a_text, scenario_a_reply):
    recognizer = fake_recognizer(text=scenario_a_text)
    use_fakes(recognizer=recognizer, extractor=fake_extractor(reply=scenario_a_reply))

    resp = client.post(
        "/api/scan-receipt",
        files={"file": ("receipt.jpg", b"\xff\xd8\xff fake jpeg", "image/jpeg")},
        data={"date": "2024-05-06"},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["draft"] == {
        "merchant": "STORE X",
        "amount": 5.5,
        "category": "Other",
        "date": "2024-05-06",
        "description": "Milk: $3.5; Bread: $2",
        "warnings": [],
    }
    assert body["ocrText"] == scenario_a_text
    assert recognizer.calls == ["/9j/IGZha2UganBlZw=="]


def test_scan_receipt_short_circuits_on_ocr_failure(client, fake_recognizer, fake_extractor, upstream_403):
    extractor = fake_extractor(reply="{}")
    use_fakes(recognizer=fake_recognizer(error=upstream_403), extractor=extractor)

    resp = client.post("/api/scan-receipt", files={"file": ("r.png", b"\x89PNG", "image/png")})

    assert resp.status_code == 502
    assert extractor.calls == []


@pytest.mark.parametrize(
    "files, data, detail",
    [
        ({"file": ("r.pdf", b"%PDF", "application/pdf")}, {}, "Unsupported image format. Use JPEG, PNG, WebP or HEIC."),
        ({"file": ("r.png", b"", "image/png")}, {}, "Empty file"),
        ({"file": ("r.png", b"\x89PNG", "image/png")}, {"date": "05/06/2024"}, "Invalid date, expected YYYY-MM-DD"),
    ],
)
def test_scan_receipt_rejects_bad_uploads(client, fake_recognizer, fake_extractor, files, data, detail):
    recognizer = fake_recognizer(text="unused")
    use_fakes(recognizer=recognizer, extractor=fake_extractor(reply="{}"))

    resp = client.post("/api/scan-receipt", files=files, data=data)

    assert resp.status_code == 400
    assert resp.json() == {"detail": detail}
    assert recognizer.calls == []


def test_request_id_is_echoed(client):
    resp = client.get("/health", headers={"X-Request-ID": "abc123"})

    assert resp.headers["X-Request-ID"] == "abc123"


def test_request_id_is_generated(client):
    resp = client.get("/health")

    assert len(resp.headers["X-Request-ID"]) == 16


def test_upstream_error_without_status(client, fake_recognizer):
    use_fakes(recognizer=fake_recognizer(error=UpstreamError("vision", None, "ConnectTimeout('timed out')")))

    resp = client.post("/api/recognize", json={"imageBase64": "aW1hZ2U="})

    assert resp.status_code == 502
    assert resp.json()["status"] is None


def test_recognize_rejects_oversized_image(client, fake_recognizer, monkeypatch):
    from expense_ocr.routes import receipts

    monkeypatch.setattr(receipts, "MAX_IMAGE_BASE64_LENGTH", 8)
    recognizer = fake_recognizer(text="unused")
    use_fakes(recognizer=recognizer)

    resp = client.post("/api/recognize", json={"imageBase64": "aW1hZ2UtdG9vLWJpZw=="})

    assert resp.status_code == 400
    assert resp.json() == {"detail": "Image too large. Maximum size is 10 MB."}
    assert recognizer.calls == []


def test_extract_non_finite_total_is_502(client, fake_extractor):
    use_fakes(extractor=fake_extractor(reply='{"merchant": "Cafe", "total": Infinity, "items": []}'))

    resp = client.post("/api/extract", json={"ocrText": "Cafe 3.00"})

    assert resp.status_code == 502
    assert resp.json()["kind"] == "malformed_model_output"


def test_scan_receipt_strict_total_mismatch_is_422(client, fake_recognizer, fake_extractor):
    recognizer = fake_recognizer(text="Diner\nBurger 12.00\nTotal 20.00")
    extractor = fake_extractor(
        reply='{"merchant": "Diner", "total": 20, "items": [{"description": "Burger", "price": 12}], "category": "Meals"}'
    )
    pipeline = ReceiptPipeline(recognizer, extractor, tolerance=0.01, strict_totals=True)
    app.dependency_overrides[deps.get_receipt_pipeline] = lambda: pipeline

    resp = client.post("/api/scan-receipt", files={"file": ("r.png", b"\x89PNG", "image/png")})

    assert resp.status_code == 422
    body = resp.json()
    assert body["kind"] == "total_mismatch"
    assert "20" in body["error"] and "12" in body["error"]
