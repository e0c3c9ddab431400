import json
from fastapi.testclient import TestClient
from app.main import app
from app.core.config import settings

client = TestClient(app)


def test_upload_reconciles_both_ledgers(tenant_id, ledger_files):
    response = client.post("/reconcile/upload", files=ledger_files, headers={"X-Tenant-ID": tenant_id})
    assert response.status_code == 200, response.text

    data = response.json()
    assert data["status"] == "success"
    assert data["run_id"]

    summary = data["summary"]
    assert summary["matched_count"] == 1
    assert summary["partially_matched_count"] == 2
    assert summary["low_confidence_count"] == 1
    assert summary["only_in_a_count"] == 1
    assert summary["only_in_b_count"] == 1
    assert summary["total_value_a"] == 2000.0
    assert summary["total_value_b"] == 1785.0

    outcomes = data["outcomes"]
    assert [o["remark"] for o in outcomes] == [
        "Match", "Partially Matched", "Partially Matched", "In File A only", "In File B only"
    ]
    assert outcomes[0]["confidence"] == "High"
    assert outcomes[0]["field_diffs"] == []
    assert outcomes[0]["record_a"]["invoice_date"] == "2024-01-05"
    assert outcomes[1]["field_diffs"] == ["taxable value"]
    assert outcomes[2]["confidence"] == "Low"
    assert outcomes[2]["key"] == "fuzzy-29BBBBB1111B1Z5-ZT-10-29BBBBB1111B1Z5-ZT/10"
    assert outcomes[3]["record_b"] is None
    assert outcomes[4]["record_a"] is None
    assert outcomes[4]["record_b"]["name"] == "Nova Supplies"


def test_results_are_paginated_in_engine_order(reconciled_tenant):
    headers = {"X-Tenant-ID": reconciled_tenant}

    first = client.get("/reconcile/results", params={"limit": 2}, headers=headers).json()
    rest = client.get("/reconcile/results", params={"offset": 2, "limit": 10}, headers=headers).json()

    assert first["total"] == 5
    assert len(first["outcomes"]) == 2
    assert len(rest["outcomes"]) == 3
    assert [o["remark"] for o in first["outcomes"] + rest["outcomes"]][-2:] == ["In File A only", "In File B only"]


def test_results_filter_by_remark(reconciled_tenant):
    response = client.get("/reconcile/results", params={"remark": "In File A only"},
                          headers={"X-Tenant-ID": reconciled_tenant})
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["outcomes"][0]["record_a"]["invoice_number"] == "OL-1"


def test_results_are_tenant_scoped(reconciled_tenant):
    response = client.get("/reconcile/results", headers={"X-Tenant-ID": f"{reconciled_tenant}-other"})
    assert response.status_code == 404


def test_upload_with_explicit_mapping(tenant_id):
    odd_csv = (
        "Supplier Reg,Vendor,Doc,When,Amount\n"
        "27AAAAA0000A1Z5,Acme,INV-001,2024-01-05,1000\n"
    )
    files = {
        "file_a": ("odd.csv", odd_csv.encode("utf-8"), "text/csv"),
        "file_b": ("odd_b.csv", odd_csv.encode("utf-8"), "text/csv"),
    }
    mapping = json.dumps({"gstin": "Supplier Reg", "name": "Vendor", "invoice_number": "Doc",
                          "invoice_date": "When", "taxable_value": "Amount"})

    response = client.post("/reconcile/upload", files=files, data={"mapping_a": mapping, "mapping_b": mapping},
                           headers={"X-Tenant-ID": tenant_id})

    assert response.status_code == 200, response.text
    assert response.json()["summary"]["matched_count"] == 1


def test_upload_rejects_bad_mapping_json(tenant_id, ledger_files):
    response = client.post("/reconcile/upload", files=ledger_files, data={"mapping_a": "{not json"},
                           headers={"X-Tenant-ID": tenant_id})
    assert response.status_code == 400
    assert "mapping_a" in response.json()["detail"]


def test_upload_rejects_missing_columns(tenant_id, ledger_files):
    ledger_files["file_b"] = ("bad.csv", b"GSTIN,Invoice No\n27AAAAA0000A1Z5,INV-1\n", "text/csv")
    response = client.post("/reconcile/upload", files=ledger_files, headers={"X-Tenant-ID": tenant_id})
    assert response.status_code == 400
    assert "File B" in response.json()["detail"]
    assert "Missing required columns" in response.json()["detail"]


def test_upload_rejects_unsupported_file(tenant_id, ledger_files):
    ledger_files["file_a"] = ("books.txt", b"hello", "text/plain")
    response = client.post("/reconcile/upload", files=ledger_files, headers={"X-Tenant-ID": tenant_id})
    assert response.status_code == 400
    assert "Invalid file format" in response.json()["detail"]


def test_upload_rejects_unknown_plan(tenant_id, ledger_files):
    response = client.post("/reconcile/upload", files=ledger_files,
                           headers={"X-Tenant-ID": tenant_id, "X-Plan": "GOLD"})
    assert response.status_code == 400
    assert "Invalid plan" in response.json()["detail"]


def test_upload_enforces_plan_row_limit(tenant_id, ledger_files, monkeypatch):
    monkeypatch.setitem(settings.PLAN_LIMITS, "BASIC", 3)

    response = client.post("/reconcile/upload", files=ledger_files, headers={"X-Tenant-ID": tenant_id})
    assert response.status_code == 413
    assert "Invoice limit exceeded" in response.json()["detail"]

    response = client.post("/reconcile/upload", files=ledger_files,
                           headers={"X-Tenant-ID": tenant_id, "X-Plan": "PRO"})
    assert response.status_code == 200
