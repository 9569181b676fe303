from customer_import.config import settings
from customer_import.customers.importers.csv_parser import HEADERS_ONLY_MESSAGE, INVALID_HEADER_MESSAGE
from customer_import.customers.importers.rules import (
    DUPLICATE_IN_FILE,
    DUPLICATE_IN_STORE,
    EMAIL_INVALID,
    INCOME_NOT_POSITIVE,
    NAME_REQUIRED,
)
from customer_import.customers.importers.service import ImportService
from customer_import.database import get_db
from customer_import.dependencies import get_import_service
from customer_import.exception_handlers import STORE_UNAVAILABLE_MESSAGE
from customer_import.main import app
from tests.conftest import InMemoryStore, make_csv

IMPORT_URL = "/api/v1/customers/import"
LIST_URL = "/api/v1/customers/"


def upload(client, content: bytes, filename: str = "customers.csv"):
    return client.post(IMPORT_URL, files={"file": (filename, content, "text/csv")})


def test_health(client):
    response = client.get("/api/v1/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_import_valid_file(client):
    response = upload(
        client,
        make_csv(
            "John Doe,john@example.com,1990-05-12,50000",
            "Jane Smith,jane@example.com,1985-01-01,75000",
        ),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["total_rows_processed"] == 2
    assert body["imported_count"] == 2
    assert body["failed_count"] == 0
    assert body["aborted"] is False
    assert body["fatal_error"] is None
    assert [c["name"] for c in body["imported"]] == ["John Doe", "Jane Smith"]
    assert body["errors"] == []


def test_import_mixed_file_reports_row_diagnostics(client):
    response = upload(
        client,
        make_csv(
            "Valid User,valid@example.com,1990-01-01,1000",
            ",noname@example.com,,",
            "Bad Email,bad-email,,",
            "Poor,poor@example.com,,-5",
        ),
    )

    body = response.json()
    assert response.status_code == 200
    assert body["imported_count"] == 1
    assert body["failed_count"] == 3
    assert [(d["row_number"], d["errors"][0]["message"]) for d in body["errors"]] == [
        (3, NAME_REQUIRED),
        (4, EMAIL_INVALID),
        (5, INCOME_NOT_POSITIVE),
    ]
    assert body["errors"][1]["values"] == {
        "name": "Bad Email",
        "email": "bad-email",
        "date_of_birth": None,
        "annual_income": None,
    }


def test_import_skips_blank_rows(client):
    response = upload(
        client,
        make_csv(
            "Valid One,valid1@example.com,,",
            "",
            ",,,",
            "Bad Email,bad-email,,",
        ),
    )

    body = response.json()
    assert body["total_rows_processed"] == 2
    assert body["imported_count"] == 1
    assert body["errors"][0]["row_number"] == 5


def test_import_reports_malformed_rows_with_raw_values(client):
    response = upload(
        client,
        make_csv(
            "Valid One,valid1@example.com,1990-01-01,1000",
            "Malformed Row,malformed@example.com",
        ),
    )

    body = response.json()
    assert body["imported_count"] == 1
    assert body["errors"][0]["row_number"] == 3
    assert body["errors"][0]["values"] == ["Malformed Row", "malformed@example.com"]
    assert body["errors"][0]["errors"][0]["field"] == "row"


def test_import_accepts_loose_header(client):
    response = upload(
        client,
        make_csv("John Doe,john@example.com,,", header=" NAME ,Email, date_of_birth ,ANNUAL_INCOME "),
    )

    assert response.status_code == 200
    assert response.json()["imported_count"] == 1


def test_import_duplicates_within_file(client):
    response = upload(client, make_csv("One,dup@example.com,,", "Two,Dup@Example.com,,"))

    body = response.json()
    assert body["imported_count"] == 0
    assert all(d["errors"][0]["message"] == DUPLICATE_IN_FILE for d in body["errors"])


def test_import_rejects_emails_already_stored(client):
    upload(client, make_csv("John Doe,john@example.com,,"))

    response = upload(client, make_csv("Johnny,JOHN@example.com,,", "New Person,new@example.com,,"))

    body = response.json()
    assert body["imported_count"] == 1
    assert body["errors"][0]["row_number"] == 2
    assert body["errors"][0]["errors"] == [{"field": "email", "message": DUPLICATE_IN_STORE}]


def test_invalid_header_returns_422(client):
    response = upload(client, make_csv("John,john@example.com,,", header="full_name,email,dob,income"))

    assert response.status_code == 422
    assert response.json() == {"error": "INVALID_CSV_HEADER", "message": INVALID_HEADER_MESSAGE}


def test_header_only_file_returns_422(client):
    response = upload(client, make_csv())

    assert response.status_code == 422
    assert response.json()["message"] == HEADERS_ONLY_MESSAGE


def test_empty_upload_returns_422(client):
    response = upload(client, b"")

    assert response.status_code == 422
    assert response.json() == {"error": "INVALID_CSV_FILE", "message": "The uploaded file is empty."}


def test_wrong_extension_returns_422(client):
    response = upload(client, make_csv("John,john@example.com,,"), filename="customers.pdf")

    assert response.status_code == 422
    assert response.json()["message"] == "The uploaded file must be a CSV file."


def test_oversized_upload_returns_422(client, monkeypatch):
    monkeypatch.setattr(settings, "max_upload_bytes", 10)

    response = upload(client, make_csv("John,john@example.com,,"))

    assert response.status_code == 422
    assert response.json()["error"] == "INVALID_CSV_FILE"


def test_missing_file_field_is_rejected(client):
    response = client.post(IMPORT_URL)

    assert response.status_code == 422


def test_list_customers_paginates_newest_first(client):
    upload(client, make_csv(*[f"Customer {n},c{n}@example.com,,{1000 + n}" for n in range(3)]))

    response = client.get(LIST_URL, params={"page": 1, "per_page": 2})

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 3
    assert body["page"] == 1
    assert body["per_page"] == 2
    assert [c["name"] for c in body["items"]] == ["Customer 2", "Customer 1"]
    assert body["items"][0]["annual_income"] == "1002.00"


def test_store_failure_before_import_returns_503(client):
    store = InMemoryStore(fail_on_lookup=True)
    app.dependency_overrides[get_import_service] = lambda: ImportService(store)
    try:
        response = upload(client, make_csv("John Doe,john@example.com,,"))
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 503
    assert response.json() == {"error": "STORE_ERROR", "message": STORE_UNAVAILABLE_MESSAGE}
    assert store.insert_attempts == 0


def test_per_batch_import_leaves_shared_connection_idle(client, monkeypatch):
    monkeypatch.setattr(settings, "import_persistence_policy", "per_batch")

    response = upload(client, make_csv("John Doe,john@example.com,,", "Jane Smith,jane@example.com,,"))

    assert response.json()["imported_count"] == 2
    assert get_db().in_transaction is False
    assert client.get(LIST_URL).json()["total"] == 2
