from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from app.pdv.db.models import IdempotencyRecord, PosSale
from app.pdv.repos.catalog import ProductRepository
from app.pdv.repos.pos_sales import PosSaleRepository
from tests.pos_helpers import (
    auth_headers,
    create_product,
    create_user,
    login,
    open_register,
    sale_payload,
    seed_defaults,
)


def _locked(*_args, **_kwargs):
    raise OperationalError("UPDATE products", {}, Exception("database is locked"))


def _disk_error(*_args, **_kwargs):
    raise OperationalError("UPDATE products", {}, Exception("disk I/O error"))


def _broken(*_args, **_kwargs):
    raise RuntimeError("response assembly failed")


def test_validation_error_shape(client, db_session):
    seed_defaults(db_session)
    user = create_user(db_session, suffix="errors-shape")
    token = login(client, user.username)

    response = client.post(
        "/pdv/pos/sales",
        headers={**auth_headers(token), "X-Trace-ID": "trace-validation"},
        json={"items": [{"product_id": "not-a-uuid", "qty": 1}], "tenders": []},
    )
    assert response.status_code == 422
    body = response.json()
    assert body["code"] == "VALIDATION_ERROR"
    assert body["message"] == "Validation error"
    assert body["trace_id"] == "trace-validation"
    fields = [error["field"] for error in body["details"]["errors"]]
    assert "items.0.product_id" in fields


def test_lock_conflict_during_sale_is_transient(client, db_session, monkeypatch):
    seed_defaults(db_session)
    user = create_user(db_session, suffix="errors-lock")
    token = login(client, user.username)
    product = create_product(db_session, code="SKU-LOCK", price="10.00", stock=2)
    open_register(client, token)
    payload = sale_payload([(product, 1)], [("cash", "10.00")])
    headers = auth_headers(token, "sale-lock-retry")

    with monkeypatch.context() as patch:
        patch.setattr(ProductRepository, "decrement_stock", _locked)
        conflict = client.post("/pdv/pos/sales", headers=headers, json=payload)
    assert conflict.status_code == 409
    assert conflict.json()["code"] == "CONCURRENCY_CONFLICT"

    db_session.expire_all()
    released = db_session.query(IdempotencyRecord).filter(IdempotencyRecord.idempotency_key == "sale-lock-retry")
    assert released.count() == 0

    retry = client.post("/pdv/pos/sales", headers=headers, json=payload)
    assert retry.status_code == 201
    assert "X-Idempotency-Result" not in retry.headers
    assert db_session.query(PosSale).count() == 1

    metrics = client.get("/pdv/ops/metrics").text
    assert "concurrency_conflict_total 1.0" in metrics
    assert "sales_committed_total 1.0" in metrics
    assert 'sale_attempts_aborted_total{reason="CONCURRENCY_CONFLICT"} 1.0' in metrics


def test_database_failure_during_sale_leaves_key_retryable(client, db_session, monkeypatch):
    seed_defaults(db_session)
    user = create_user(db_session, suffix="errors-disk")
    token = login(client, user.username)
    product = create_product(db_session, code="SKU-DISK", price="10.00", stock=2)
    open_register(client, token)
    payload = sale_payload([(product, 1)], [("cash", "10.00")])
    headers = auth_headers(token, "sale-disk-retry")

    with monkeypatch.context() as patch:
        patch.setattr(ProductRepository, "decrement_stock", _disk_error)
        failed = client.post("/pdv/pos/sales", headers=headers, json=payload)
    assert failed.status_code == 503
    assert failed.json()["code"] == "DB_UNAVAILABLE"

    db_session.expire_all()
    assert db_session.query(IdempotencyRecord).count() == 0

    retry = client.post("/pdv/pos/sales", headers=headers, json=payload)
    assert retry.status_code == 201
    assert "X-Idempotency-Result" not in retry.headers
    assert db_session.query(PosSale).count() == 1

    metrics = client.get("/pdv/ops/metrics").text
    assert 'sale_attempts_aborted_total{reason="DB_UNAVAILABLE"} 1.0' in metrics


def test_unexpected_error_during_sale_releases_the_key(client, db_session, monkeypatch):
    import app.main as main

    seed_defaults(db_session)
    user = create_user(db_session, suffix="errors-crash")
    token = login(client, user.username)
    product = create_product(db_session, code="SKU-CRASH", price="10.00", stock=2)
    open_register(client, token)
    payload = sale_payload([(product, 1)], [("cash", "10.00")])
    headers = auth_headers(token, "sale-crash-retry")

    with monkeypatch.context() as patch:
        patch.setattr(ProductRepository, "get_many", _broken)
        with TestClient(main.create_app(), raise_server_exceptions=False) as raw_client:
            crashed = raw_client.post("/pdv/pos/sales", headers=headers, json=payload)
    assert crashed.status_code == 500
    assert crashed.json()["code"] == "INTERNAL_ERROR"

    db_session.expire_all()
    assert db_session.query(IdempotencyRecord).count() == 0

    retry = client.post("/pdv/pos/sales", headers=headers, json=payload)
    assert retry.status_code == 201
    assert "X-Idempotency-Result" not in retry.headers

def test_unhandled_lock_error_maps_to_conflict(client, db_session, monkeypatch):
    import app.main as main

    seed_defaults(db_session)
    user = create_user(db_session, suffix="errors-unhandled")
    token = login(client, user.username)
    monkeypatch.setattr(PosSaleRepository, "list_sales", _locked)

    with TestClient(main.create_app(), raise_server_exceptions=False) as raw_client:
        response = raw_client.get("/pdv/pos/sales", headers=auth_headers(token))
    assert response.status_code == 409
    assert response.json()["code"] == "CONCURRENCY_CONFLICT"
    assert response.json()["details"] == {"type": "OperationalError"}


def test_metrics_endpoint_records_requests(client):
    client.get("/health")
    response = client.get("/pdv/ops/metrics")
    assert response.status_code == 200
    assert "text/plain" in response.headers["content-type"]
    assert 'http_requests_total{route="/health",method="GET",status="200"} 1.0' in response.text
