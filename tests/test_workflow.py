from pathlib import Path
import sys

import pytest
from fastapi.testclient import TestClient
from openpyxl import load_workbook

sys.path.append(str(Path(__file__).resolve().parents[1]))

from workreport.application import get_review_service, reset_review_state
from workreport.infrastructure import StaticMasterDataProvider, WorkbookLedger
from workreport.infrastructure.workbook import create_ledger_workbook, sheet_title


@pytest.fixture(autouse=True)
def reset_state():
    reset_review_state()
    yield
    reset_review_state()


@pytest.fixture()
def ledger_path(tmp_path):
    return create_ledger_workbook(tmp_path / "ledger.xlsx", "2023-12", ["Sato", "Suzuki"])


@pytest.fixture()
def client(ledger_path, monkeypatch):
    monkeypatch.setenv("LEDGER_WORKBOOK", str(ledger_path))
    from workreport.app import create_app

    app = create_app()
    get_review_service().configure(
        ledger=WorkbookLedger(ledger_path),
        master_data_provider=StaticMasterDataProvider(
            products=["Green Tea 500ml"],
            employees=["Sato", "Tanaka", "Suzuki"],
        ),
    )
    with TestClient(app) as test_client:
        yield test_client


def _extraction() -> dict:
    return {
        "header": {
            "work_date": "2024/01/15",
            "product_name": "Green Tee 500ml",
            "product_error": "not in master data",
            "original_product_name": "Green Tee 500ml",
            "product_confidence": 0.7,
        },
        "packaging": [
            {"name": "Sato", "start": "8:00", "end": "17:00", "breaks": {"lunch": True, "mid": False}, "output_count": "30"},
            {"name": "Tanaka", "start": "8:00", "end": "17:00", "output_count": "28"},
        ],
        "machine": [
            {"name": "Suzuki", "start": "8:00", "end": "17:00", "name_error": "low confidence", "confidence": 0.5},
        ],
    }


def test_review_save_and_retry_workflow(client, ledger_path):
    # 1. open the review; Suzuki is reconciled against master data right away
    response = client.post("/api/reviews", json=_extraction())
    assert response.status_code == 200
    review = response.json()
    review_id = review["review_id"]
    assert review["report"]["header"]["product_confirmation_status"] == "pending"
    assert review["report"]["machine"][0]["name_confirmation_status"] == "approved"
    assert review["report"]["machine"][0]["name_error"] is None

    # 2. saving is blocked while the product is unconfirmed
    response = client.post(f"/api/reviews/{review_id}/save")
    body = response.json()
    assert body["status"] == "blocked"
    assert body["block"]["reason"] == "unconfirmed"
    assert body["block"]["fields"] == ["product"]

    # 3. confirm -> needs correction -> pick the master value
    response = client.post(f"/api/reviews/{review_id}/confirmations/request", json={"kind": "product"})
    assert response.json()["prompt"] == {"field": "product", "value": "Green Tee 500ml"}
    response = client.post(f"/api/reviews/{review_id}/confirmations/resolve", json={"correct": False})
    assert response.json()["auto_open"] == ["product"]
    response = client.post(
        f"/api/reviews/{review_id}/confirmations/select",
        json={"kind": "product", "value": "Green Tea 500ml"},
    )
    header = response.json()["report"]["header"]
    assert header["product_confirmation_status"] == "approved"
    assert header["product_error"] is None
    assert response.json()["correction"]["badge"] == "warning"

    # 4. time typed loosely is normalised
    response = client.put(
        f"/api/reviews/{review_id}/entries/packaging/0/slots/0",
        json={"field": "end", "value": "1730"},
    )
    entry = response.json()["report"]["packaging"][0]
    assert entry["end"] == "17:30"
    assert entry["time_slots"][0]["end"] == "17:30"

    # 5. Tanaka has no personal sheet for 2023-12
    response = client.post(f"/api/reviews/{review_id}/save")
    body = response.json()
    assert body["status"] == "partial"
    assert body["failed_workers"] == ["Tanaka"]
    assert body["period"] == "2023-12"
    review = body["review"]
    assert [item["name"] for item in review["report"]["packaging"]] == ["Tanaka"]
    assert review["report"]["machine"] == []
    assert review["saving"] is False
    assert review["failed_workers"] == ["Tanaka"]

    sheet = load_workbook(ledger_path)[sheet_title("2023-12", "Sato")]
    assert sheet.cell(row=2, column=1).value == "2024-01-15"
    assert sheet.cell(row=2, column=5).value == "17:30"

    # 6. the sheet is created and the retry overwrites nothing
    create_ledger_workbook(ledger_path, "2023-12", ["Tanaka"])
    response = client.post(f"/api/reviews/{review_id}/save")
    assert response.json()["status"] == "saved"
    assert client.get(f"/api/reviews/{review_id}").status_code == 404


def test_overwrite_confirmation_flow(client):
    payload = _extraction()
    payload["header"].pop("product_error")
    payload["header"]["product_name"] = "Green Tea 500ml"
    payload["packaging"] = payload["packaging"][:1]

    review_id = client.post("/api/reviews", json=payload).json()["review_id"]
    assert client.post(f"/api/reviews/{review_id}/save").json()["status"] == "saved"

    review_id = client.post("/api/reviews", json=payload).json()["review_id"]
    body = client.post(f"/api/reviews/{review_id}/save").json()
    assert body["status"] == "confirm_overwrite"
    assert sorted(body["existing_workers"]) == ["Sato", "Suzuki"]
    assert body["review"]["saving"] is True

    body = client.post(f"/api/reviews/{review_id}/save/overwrite", json={"confirm": False}).json()
    assert body["status"] == "cancelled"
    assert body["review"]["saving"] is False

    assert client.post(f"/api/reviews/{review_id}/save").json()["status"] == "confirm_overwrite"
    body = client.post(f"/api/reviews/{review_id}/save/overwrite", json={"confirm": True}).json()
    assert body["status"] == "saved"


def test_duplicate_names_are_highlighted(client):
    payload = _extraction()
    payload["header"].pop("product_error")
    payload["header"]["product_name"] = "Green Tea 500ml"
    payload["packaging"][1]["name"] = "Sato"

    review_id = client.post("/api/reviews", json=payload).json()["review_id"]
    body = client.post(f"/api/reviews/{review_id}/save").json()
    assert body["status"] == "blocked"
    assert body["block"]["duplicates"]["packaging"] == {"Sato": 2}

    review = client.post(f"/api/reviews/{review_id}/duplicates/acknowledge").json()
    assert review["highlights"] == [{"kind": "packaging", "name": "Sato"}]
    assert review["pending_duplicates"] is None

    review = client.put(
        f"/api/reviews/{review_id}/entries/packaging/1",
        json={"field": "name", "value": "Tanaka"},
    ).json()
    assert review["highlights"] == []


def test_entry_editing_endpoints(client):
    review_id = client.post("/api/reviews", json=_extraction()).json()["review_id"]

    body = client.post(f"/api/reviews/{review_id}/entries/machine", json={}).json()
    assert body["index"] == 0
    new_entry = body["review"]["report"]["machine"][0]
    assert new_entry["name"] == ""
    assert new_entry["name_confirmation_status"] == "pending"

    review = client.post(f"/api/reviews/{review_id}/entries/machine/0/slots").json()
    assert len(review["report"]["machine"][0]["time_slots"]) == 2
    review = client.delete(f"/api/reviews/{review_id}/entries/machine/0/slots/0").json()
    assert review["report"]["machine"][0]["start"] == "8:00"
    assert len(review["report"]["machine"][0]["time_slots"]) == 1
    review = client.delete(f"/api/reviews/{review_id}/entries/machine/0/slots/0").json()
    assert len(review["report"]["machine"][0]["time_slots"]) == 1

    review = client.put(
        f"/api/reviews/{review_id}/entries/packaging/1/breaks",
        json={"break": "mid", "value": True},
    ).json()
    assert review["report"]["packaging"][1]["breaks"] == {"lunch": False, "mid": True}

    review = client.delete(f"/api/reviews/{review_id}/entries/machine/0").json()
    assert len(review["report"]["machine"]) == 1

    assert client.put(f"/api/reviews/{review_id}/entries/packaging/9", json={"field": "name", "value": "x"}).status_code == 404
    assert client.put(f"/api/reviews/{review_id}/entries/packaging/-1", json={"field": "name", "value": "x"}).status_code == 404
    assert client.post(
        f"/api/reviews/{review_id}/confirmations/request", json={"kind": "packaging", "index": -1}
    ).status_code == 404
    assert client.post(f"/api/reviews/{review_id}/confirmations/finalize", json={"kind": "product"}).status_code == 409
    assert client.put(f"/api/reviews/{review_id}/header", json={"field": "work_date", "value": "not a date"}).status_code == 400

    assert client.delete(f"/api/reviews/{review_id}").status_code == 409
    assert client.delete(f"/api/reviews/{review_id}", params={"confirm": True}).status_code == 200
