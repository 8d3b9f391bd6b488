from decimal import Decimal

from app.pdv.db.models import CustomerPurchase, PosCashMovement, PosSale, Product, StockMovement
from tests.pos_helpers import (
    auth_headers,
    create_customer,
    create_product,
    create_user,
    login,
    open_register,
    open_session_row,
    sale_payload,
    seed_defaults,
)


def _cashier(client, db_session, suffix: str):
    seed_defaults(db_session)
    user = create_user(db_session, suffix=suffix)
    token = login(client, user.username)
    return user, token


def test_commit_sale_with_change(client, db_session):
    user, token = _cashier(client, db_session, "commit-cash")
    product = create_product(db_session, code="SKU-COMMIT-1", price="100.00", stock=5)
    register = open_register(client, token)

    payload = sale_payload(
        [(product, 2)],
        [("cash", "200.00")],
        discount={"value": "10", "kind": "percentage"},
    )
    response = client.post("/pdv/pos/sales", headers=auth_headers(token), json=payload)
    assert response.status_code == 201, response.text
    data = response.json()
    assert data["subtotal"] == "200.00"
    assert data["discount_amount"] == "20.00"
    assert data["total"] == "180.00"
    assert data["fees"] == "0.00"
    assert data["final_amount"] == "180.00"
    assert data["paid_total"] == "200.00"
    assert data["change_due"] == "20.00"
    assert data["cash_session_id"] == register["id"]
    assert data["seller_name"] == user.full_name
    assert data["lines"][0]["product_code"] == "SKU-COMMIT-1"
    assert data["lines"][0]["unit_price"] == "100.00"
    assert data["payments"][0]["kind"] == "cash"

    db_session.expire_all()
    assert db_session.get(Product, product.id).stock == 3
    stock_moves = db_session.query(StockMovement).filter(StockMovement.product_id == product.id).all()
    assert len(stock_moves) == 1
    assert stock_moves[0].quantity == 2
    assert stock_moves[0].previous_stock == 5
    assert stock_moves[0].new_stock == 3

    session = open_session_row(db_session, user)
    assert str(session.total_sales) == "180.00"
    sale_movements = (
        db_session.query(PosCashMovement)
        .filter(PosCashMovement.cash_session_id == session.id, PosCashMovement.movement_type == "SALE")
        .all()
    )
    assert len(sale_movements) == 1
    assert str(sale_movements[0].sale_id) == data["id"]


def test_sale_uses_catalog_price_snapshot(client, db_session):
    _user, token = _cashier(client, db_session, "commit-snap")
    product = create_product(db_session, code="SKU-SNAP", price="50.00", stock=5)
    open_register(client, token)

    response = client.post(
        "/pdv/pos/sales",
        headers=auth_headers(token),
        json=sale_payload([(product, 1)], [("pix", "50.00")]),
    )
    assert response.status_code == 201
    sale_id = response.json()["id"]

    product = db_session.get(Product, product.id)
    product.sale_price = Decimal("80.00")
    product.name = "Renamed"
    db_session.commit()

    detail = client.get(f"/pdv/pos/sales/{sale_id}", headers=auth_headers(token))
    assert detail.status_code == 200
    line = detail.json()["lines"][0]
    assert line["unit_price"] == "50.00"
    assert line["product_name"] == "Product SKU-SNAP"


def test_customer_borne_fee_is_added_to_final_amount(client, db_session):
    user, token = _cashier(client, db_session, "commit-fee")
    product = create_product(db_session, code="SKU-FEE", price="100.00", stock=2)
    customer = create_customer(db_session)
    open_register(client, token)

    response = client.post(
        "/pdv/pos/sales",
        headers=auth_headers(token),
        json=sale_payload([(product, 1)], [("credit", "100.00")], customer=customer),
    )
    assert response.status_code == 201, response.text
    data = response.json()
    assert data["total"] == "100.00"
    assert data["fees"] == "3.09"
    assert data["final_amount"] == "103.09"
    assert data["payments"][0]["charge_amount"] == "103.09"
    assert data["customer_name"] == customer.name

    db_session.expire_all()
    purchases = db_session.query(CustomerPurchase).filter(CustomerPurchase.customer_id == customer.id).all()
    assert len(purchases) == 1
    assert str(purchases[0].amount) == "103.09"
    assert str(open_session_row(db_session, user).total_sales) == "103.09"


def test_repeated_product_lines_share_one_stock_check(client, db_session):
    _user, token = _cashier(client, db_session, "commit-dupe")
    product = create_product(db_session, code="SKU-DUPE", price="10.00", stock=3)
    open_register(client, token)

    response = client.post(
        "/pdv/pos/sales",
        headers=auth_headers(token),
        json=sale_payload([(product, 2), (product, 2)], [("cash", "40.00")]),
    )
    assert response.status_code == 409
    body = response.json()
    assert body["code"] == "INSUFFICIENT_STOCK"
    assert body["details"] == {"product_id": str(product.id), "requested": 4, "available": 3}

    db_session.expire_all()
    assert db_session.get(Product, product.id).stock == 3


def test_sale_requires_open_register(client, db_session):
    _user, token = _cashier(client, db_session, "commit-noreg")
    product = create_product(db_session, code="SKU-NOREG", stock=1)

    response = client.post(
        "/pdv/pos/sales",
        headers=auth_headers(token),
        json=sale_payload([(product, 1)], [("cash", "100.00")]),
    )
    assert response.status_code == 409
    assert response.json()["code"] == "NO_OPEN_REGISTER"

    db_session.expire_all()
    assert db_session.get(Product, product.id).stock == 1
    assert db_session.query(PosSale).count() == 0


def test_sale_rejects_underpayment_and_unknown_products(client, db_session):
    _user, token = _cashier(client, db_session, "commit-reject")
    product = create_product(db_session, code="SKU-REJ", price="100.00", stock=1)
    inactive = create_product(db_session, code="SKU-OFF", active=False)
    customer = create_customer(db_session)
    open_register(client, token)

    short = client.post(
        "/pdv/pos/sales",
        headers=auth_headers(token),
        json=sale_payload([(product, 1)], [("cash", "60.00")]),
    )
    assert short.status_code == 422
    assert short.json()["code"] == "INVALID_PAYMENT_AMOUNT"
    assert short.json()["details"]["remaining"] == "40.00"

    off = client.post(
        "/pdv/pos/sales",
        headers=auth_headers(token),
        json=sale_payload([(inactive, 1)], [("cash", "100.00")]),
    )
    assert off.status_code == 404
    assert off.json()["code"] == "PRODUCT_NOT_FOUND"

    deferred = client.post(
        "/pdv/pos/sales",
        headers=auth_headers(token),
        json=sale_payload([(product, 1)], [("deferred_credit", "100.00")]),
    )
    assert deferred.status_code == 422
    assert deferred.json()["code"] == "DEFERRED_CREDIT_REQUIRES_CUSTOMER"

    empty = client.post(
        "/pdv/pos/sales",
        headers=auth_headers(token),
        json={"items": [], "tenders": [{"kind": "cash", "amount": "1.00"}], "customer_id": str(customer.id)},
    )
    assert empty.status_code == 422
    assert empty.json()["code"] == "INVALID_CART"

    db_session.expire_all()
    assert db_session.get(Product, product.id).stock == 1
    assert db_session.query(PosSale).count() == 0


def test_list_and_filter_sales(client, db_session):
    user, token = _cashier(client, db_session, "commit-list")
    product = create_product(db_session, code="SKU-LIST", price="10.00", stock=10)
    customer = create_customer(db_session, name="Ana")
    open_register(client, token)

    for payload in (
        sale_payload([(product, 1)], [("cash", "10.00")]),
        sale_payload([(product, 2)], [("pix", "20.00")], customer=customer),
    ):
        assert client.post("/pdv/pos/sales", headers=auth_headers(token), json=payload).status_code == 201

    everything = client.get("/pdv/pos/sales", headers=auth_headers(token))
    assert everything.status_code == 200
    assert everything.json()["total"] == 2

    by_customer = client.get(f"/pdv/pos/sales?customer_id={customer.id}", headers=auth_headers(token))
    assert by_customer.json()["total"] == 1
    assert by_customer.json()["rows"][0]["total"] == "20.00"

    by_seller = client.get(f"/pdv/pos/sales?seller_id={user.id}", headers=auth_headers(token))
    assert by_seller.json()["total"] == 2

    missing = client.get("/pdv/pos/sales/00000000-0000-0000-0000-000000000000", headers=auth_headers(token))
    assert missing.status_code == 404
    assert missing.json()["code"] == "SALE_NOT_FOUND"
