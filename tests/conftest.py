import uuid
import pytest

BOOKS_CSV = (
    "GSTIN,Name,Invoice No,Invoice Date,Taxable Value\n"
    "27AAAAA0000A1Z5,Acme Pvt Ltd,INV-001,2024-01-05,1000\n"
    "27AAAAA0000A1Z5,Acme Pvt Ltd,INV-002,2024-01-06,500\n"
    "29BBBBB1111B1Z5,Zenith Traders,ZT-10,2024-01-08,200\n"
    "33CCCCC2222C1Z5,Orbit Logistics,OL-1,2024-01-09,300\n"
)

GSTR2B_CSV = (
    "GSTR-2B B2B Invoices,,,,\n"
    "GSTIN of Supplier,Trade/Legal Name,Invoice Number,Invoice Date,Taxable Value (₹)\n"
    "27AAAAA0000A1Z5,ACME PVT. LTD.,inv-001,05-01-2024,\"1,000.00\"\n"
    "27AAAAA0000A1Z5,ACME PVT. LTD.,INV-002,06-01-2024,510\n"
    "29BBBBB1111B1Z5,Zenith,ZT/10,08-01-2024,200\n"
    "07DDDDD3333D1Z5,Nova Supplies,NS-5,10-01-2024,75\n"
)


@pytest.fixture
def tenant_id():
    return f"test-tenant-{uuid.uuid4().hex[:8]}"


@pytest.fixture
def ledger_files():
    """Purchase register (File A) and GSTR-2B export (File B) for the same month."""
    return {
        "file_a": ("books.csv", BOOKS_CSV.encode("utf-8"), "text/csv"),
        "file_b": ("gstr2b.csv", GSTR2B_CSV.encode("utf-8"), "text/csv"),
    }


@pytest.fixture
def reconciled_tenant(tenant_id, ledger_files):
    from fastapi.testclient import TestClient
    from app.main import app

    client = TestClient(app)
    response = client.post("/reconcile/upload", files=ledger_files, headers={"X-Tenant-ID": tenant_id})
    assert response.status_code == 200, response.text
    return tenant_id
