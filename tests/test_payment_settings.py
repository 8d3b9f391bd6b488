from app.pdv.db.models import AuditEvent, PaymentMethodSetting
from tests.pos_helpers import (
    auth_headers,
    create_product,
    create_user,
    login,
    open_register,
    sale_payload,
    seed_defaults,
)


def _methods(body: dict) -> dict:
    return {method["kind"]: method for method in body["methods"]}


def test_defaults_are_seeded(client, db_session):
    seed_defaults(db_session)
    user = create_user(db_session, suffix="settings-read")
    token = login(client, user.username)

    response = client.get("/pdv/settings/payments", headers=auth_headers(token))
    assert response.status_code == 200
    body = response.json()
    assert body["default_fee_responsibility"] == "customer"
    methods = _methods(body)
    assert set(methods) == {"cash", "pix", "pix_qr", "debit", "credit", "deferred_credit"}
    assert methods["credit"]["fee_kind"] == "percentage"
    assert methods["credit"]["enabled"] is True
    assert methods["cash"]["effective_fee_responsibility"] == "customer"

    assert db_session.query(PaymentMethodSetting).count() == 6


def test_only_admin_can_update(client, db_session):
    seed_defaults(db_session)
    cashier = create_user(db_session, suffix="settings-cashier")
    token = login(client, cashier.username)

    response = client.put(
        "/pdv/settings/payments",
        headers=auth_headers(token),
        json={"methods": {"debit": {"enabled": False}}},
    )
    assert response.status_code == 403
    assert response.json()["code"] == "PERMISSION_DENIED"


def test_update_changes_the_next_sale(client, db_session):
    seed_defaults(db_session)
    admin = create_user(db_session, suffix="settings-admin", role="ADMIN")
    token = login(client, admin.username)
    product = create_product(db_session, code="SKU-SETTINGS", price="100.00", stock=5)
    open_register(client, token)

    update = client.put(
        "/pdv/settings/payments",
        headers=auth_headers(token),
        json={
            "default_fee_responsibility": "store",
            "methods": {
                "credit": {"fee": "3", "fee_responsibility": None},
                "debit": {"enabled": False},
            },
        },
    )
    assert update.status_code == 200, update.text
    methods = _methods(update.json())
    assert methods["credit"]["fee_responsibility"] is None
    assert methods["credit"]["effective_fee_responsibility"] == "store"
    assert methods["debit"]["enabled"] is False

    sale = client.post(
        "/pdv/pos/sales",
        headers=auth_headers(token),
        json=sale_payload([(product, 1)], [("credit", "100.00")]),
    )
    assert sale.status_code == 201, sale.text
    payment = sale.json()["payments"][0]
    assert payment["fee"] == "0.00"
    assert payment["store_fee"] == "3.00"
    assert payment["net_amount"] == "97.00"
    assert sale.json()["final_amount"] == "100.00"

    disabled = client.post(
        "/pdv/pos/sales",
        headers=auth_headers(token),
        json=sale_payload([(product, 1)], [("debit", "100.00")]),
    )
    assert disabled.status_code == 422
    assert disabled.json()["code"] == "PAYMENT_METHOD_DISABLED"

    db_session.expire_all()
    event = db_session.query(AuditEvent).filter(AuditEvent.action == "payment_settings.update").one()
    assert event.before_payload["default_fee_responsibility"] == "customer"
    assert event.after_payload["default_fee_responsibility"] == "store"


def test_preview_endpoints(client, db_session):
    seed_defaults(db_session)
    user = create_user(db_session, suffix="settings-preview")
    token = login(client, user.username)

    priced = client.post(
        "/pdv/pos/cart/price",
        headers=auth_headers(token),
        json={
            "items": [
                {
                    "product_id": "sku-1",
                    "unit_price": "100.00",
                    "qty": 2,
                    "discount": {"value": "10", "kind": "percentage"},
                }
            ],
            "discount": {"value": "5", "kind": "percentage"},
        },
    )
    assert priced.status_code == 200
    assert priced.json()["subtotal"] == "180.00"
    assert priced.json()["total"] == "171.00"

    invalid = client.post(
        "/pdv/pos/cart/price",
        headers=auth_headers(token),
        json={"items": [{"product_id": "sku-1", "unit_price": "1.00", "qty": 0}]},
    )
    assert invalid.status_code == 422
    assert invalid.json()["code"] == "INVALID_CART"

    partial = client.post(
        "/pdv/pos/payments/allocate",
        headers=auth_headers(token),
        json={"total": "100.00", "tenders": [{"kind": "pix", "amount": "60.00"}]},
    )
    assert partial.status_code == 200
    assert partial.json()["payable"] is False
    assert partial.json()["remaining"] == "40.00"

    overpaid = client.post(
        "/pdv/pos/payments/allocate",
        headers=auth_headers(token),
        json={"total": "100.00", "tenders": [{"kind": "pix", "amount": "120.00"}]},
    )
    assert overpaid.status_code == 422
    assert overpaid.json()["code"] == "INVALID_PAYMENT_AMOUNT"
