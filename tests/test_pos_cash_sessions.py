from app.pdv.db.models import PosCashMovement, PosCashSession
from tests.pos_helpers import (
    auth_headers,
    create_product,
    create_user,
    login,
    open_register,
    sale_payload,
    seed_defaults,
)


def _action(client, token, session_id, **payload):
    return client.post(
        f"/pdv/pos/cash/sessions/{session_id}/actions",
        headers=auth_headers(token),
        json=payload,
    )


def test_one_open_session_per_cashier(client, db_session):
    seed_defaults(db_session)
    user = create_user(db_session, suffix="cash-one")
    other = create_user(db_session, suffix="cash-other")
    token = login(client, user.username)
    other_token = login(client, other.username)

    first = open_register(client, token, "100.00")
    assert first["status"] == "OPEN"
    assert first["expected_cash"] == "100.00"

    second = client.post("/pdv/pos/cash/sessions", headers=auth_headers(token), json={"opening_amount": "50.00"})
    assert second.status_code == 409
    assert second.json()["code"] == "ONE_OPEN_SESSION_PER_CASHIER"

    # Other cashiers are unaffected.
    open_register(client, other_token, "20.00")

    current = client.get("/pdv/pos/cash/sessions/current", headers=auth_headers(token))
    assert current.status_code == 200
    assert current.json()["session"]["id"] == first["id"]

    db_session.expire_all()
    assert db_session.query(PosCashSession).filter(PosCashSession.status == "OPEN").count() == 2


def test_reopen_after_close(client, db_session):
    seed_defaults(db_session)
    user = create_user(db_session, suffix="cash-reopen")
    token = login(client, user.username)

    session = open_register(client, token, "10.00")
    closed = _action(client, token, session["id"], action="CLOSE", counted_cash="10.00")
    assert closed.status_code == 200
    assert closed.json()["difference_type"] == "EVEN"

    assert client.get("/pdv/pos/cash/sessions/current", headers=auth_headers(token)).json()["session"] is None
    reopened = open_register(client, token, "5.00")
    assert reopened["id"] != session["id"]


def test_close_reconciles_sales_against_count(client, db_session):
    seed_defaults(db_session)
    user = create_user(db_session, suffix="cash-recon")
    token = login(client, user.username)
    product = create_product(db_session, code="SKU-CASH", price="150.00", stock=10)
    session = open_register(client, token, "100.00")

    response = client.post(
        "/pdv/pos/sales",
        headers=auth_headers(token),
        json=sale_payload([(product, 3)], [("cash", "450.00")]),
    )
    assert response.status_code == 201

    closed = _action(client, token, session["id"], action="CLOSE", counted_cash="540.00", notes="end of shift")
    assert closed.status_code == 200, closed.text
    data = closed.json()
    assert data["status"] == "CLOSED"
    assert data["total_sales"] == "450.00"
    assert data["expected_cash"] == "550.00"
    assert data["counted_cash"] == "540.00"
    assert data["difference"] == "-10.00"
    assert data["difference_type"] == "SHORT"
    assert data["closed_by_user_id"] == str(user.id)
    assert data["notes"] == "end of shift"

    again = _action(client, token, session["id"], action="CLOSE", counted_cash="540.00")
    assert again.status_code == 409
    assert again.json()["code"] == "CASH_SESSION_CLOSED"

    after_close = client.post(
        "/pdv/pos/sales",
        headers=auth_headers(token),
        json=sale_payload([(product, 1)], [("cash", "150.00")]),
    )
    assert after_close.status_code == 409
    assert after_close.json()["code"] == "NO_OPEN_REGISTER"


def test_cash_in_and_out_adjust_expected_cash(client, db_session):
    seed_defaults(db_session)
    user = create_user(db_session, suffix="cash-inout")
    token = login(client, user.username)
    session = open_register(client, token, "100.00")

    cash_in = _action(client, token, session["id"], action="CASH_IN", amount="25.00", reason="change float")
    assert cash_in.status_code == 200
    assert cash_in.json()["total_cash_in"] == "25.00"
    assert cash_in.json()["expected_cash"] == "125.00"

    cash_out = _action(client, token, session["id"], action="CASH_OUT", amount="40.00", reason="bank deposit")
    assert cash_out.status_code == 200
    assert cash_out.json()["total_cash_out"] == "40.00"
    assert cash_out.json()["expected_cash"] == "85.00"

    too_much = _action(client, token, session["id"], action="CASH_OUT", amount="85.01")
    assert too_much.status_code == 422
    assert too_much.json()["code"] == "VALIDATION_ERROR"

    missing_amount = _action(client, token, session["id"], action="CASH_IN")
    assert missing_amount.status_code == 422

    closed = _action(client, token, session["id"], action="CLOSE", counted_cash="90.00")
    assert closed.json()["difference"] == "5.00"
    assert closed.json()["difference_type"] == "OVER"

    movements = client.get(f"/pdv/pos/cash/movements?session_id={session['id']}", headers=auth_headers(token))
    assert movements.status_code == 200
    kinds = sorted(row["movement_type"] for row in movements.json()["rows"])
    assert kinds == ["CASH_IN", "CASH_OUT", "CLOSE", "OPEN"]


def test_withdrawing_the_exact_drawer_balance_in_cents(client, db_session):
    seed_defaults(db_session)
    user = create_user(db_session, suffix="cash-cents")
    token = login(client, user.username)
    session = open_register(client, token, "0.70")

    cash_in = _action(client, token, session["id"], action="CASH_IN", amount="0.10")
    assert cash_in.json()["expected_cash"] == "0.80"

    cash_out = _action(client, token, session["id"], action="CASH_OUT", amount="0.80")
    assert cash_out.status_code == 200, cash_out.text
    assert cash_out.json()["expected_cash"] == "0.00"

    closed = _action(client, token, session["id"], action="CLOSE", counted_cash="0.00")
    assert closed.status_code == 200
    assert closed.json()["expected_cash"] == "0.00"
    assert closed.json()["difference"] == "0.00"
    assert closed.json()["difference_type"] == "EVEN"


def test_only_owner_or_admin_can_change_session(client, db_session):
    seed_defaults(db_session)
    owner = create_user(db_session, suffix="cash-owner")
    intruder = create_user(db_session, suffix="cash-intruder")
    admin = create_user(db_session, suffix="cash-admin", role="ADMIN")
    owner_token = login(client, owner.username)
    intruder_token = login(client, intruder.username)
    admin_token = login(client, admin.username)
    session = open_register(client, owner_token, "30.00")

    denied = _action(client, intruder_token, session["id"], action="CLOSE", counted_cash="30.00")
    assert denied.status_code == 403
    assert denied.json()["code"] == "PERMISSION_DENIED"

    closed = _action(client, admin_token, session["id"], action="CLOSE", counted_cash="30.00")
    assert closed.status_code == 200
    assert closed.json()["closed_by_user_id"] == str(admin.id)

    db_session.expire_all()
    close_movement = (
        db_session.query(PosCashMovement)
        .filter(PosCashMovement.movement_type == "CLOSE")
        .one()
    )
    assert close_movement.actor_user_id == admin.id
    assert close_movement.cashier_user_id == owner.id


def test_movement_listing_is_scoped_to_cashier(client, db_session):
    seed_defaults(db_session)
    first = create_user(db_session, suffix="cash-list-a")
    second = create_user(db_session, suffix="cash-list-b")
    admin = create_user(db_session, suffix="cash-list-admin", role="ADMIN")
    first_token = login(client, first.username)
    second_token = login(client, second.username)
    open_register(client, first_token, "1.00")
    open_register(client, second_token, "2.00")

    own = client.get("/pdv/pos/cash/movements", headers=auth_headers(first_token))
    assert own.json()["total"] == 1
    assert own.json()["rows"][0]["amount"] == "1.00"

    peek = client.get(f"/pdv/pos/cash/movements?cashier_user_id={second.id}", headers=auth_headers(first_token))
    assert peek.json()["total"] == 1
    assert peek.json()["rows"][0]["cashier_user_id"] == str(first.id)

    everything = client.get("/pdv/pos/cash/movements", headers=auth_headers(login(client, admin.username)))
    assert everything.json()["total"] == 2


def test_unknown_session_and_negative_opening(client, db_session):
    seed_defaults(db_session)
    user = create_user(db_session, suffix="cash-unknown")
    token = login(client, user.username)

    missing = _action(client, token, "00000000-0000-0000-0000-000000000000", action="CLOSE", counted_cash="0")
    assert missing.status_code == 404
    assert missing.json()["code"] == "CASH_SESSION_NOT_FOUND"

    negative = client.post("/pdv/pos/cash/sessions", headers=auth_headers(token), json={"opening_amount": "-1.00"})
    assert negative.status_code == 422


def test_manual_movements_carry_a_category(client, db_session):
    seed_defaults(db_session)
    user = create_user(db_session, suffix="cash-category")
    token = login(client, user.username)
    product = create_product(db_session, code="SKU-CAT", price="15.00", stock=5)
    session = open_register(client, token, "50.00")

    sale = client.post(
        "/pdv/pos/sales", headers=auth_headers(token), json=sale_payload([(product, 1)], [("cash", "15.00")])
    )
    assert sale.status_code == 201

    external = _action(client, token, session["id"], action="CASH_IN", amount="30.00", category="external_sale")
    assert external.status_code == 200
    plain_in = _action(client, token, session["id"], action="CASH_IN", amount="5.00")
    assert plain_in.status_code == 200
    expense = _action(client, token, session["id"], action="CASH_OUT", amount="12.00", category="EXPENSE")
    assert expense.status_code == 200
    assert expense.json()["expected_cash"] == "88.00"

    wrong_direction = _action(client, token, session["id"], action="CASH_IN", amount="1.00", category="EXPENSE")
    assert wrong_direction.status_code == 422
    assert wrong_direction.json()["details"]["allowed"] == ["OTHER_INCOME", "EXTERNAL_SALE"]

    movements = client.get(f"/pdv/pos/cash/movements?session_id={session['id']}", headers=auth_headers(token))
    categories = sorted((row["movement_type"], row["category"] or "") for row in movements.json()["rows"])
    assert categories == [
        ("CASH_IN", "EXTERNAL_SALE"),
        ("CASH_IN", "OTHER_INCOME"),
        ("CASH_OUT", "EXPENSE"),
        ("OPEN", ""),
        ("SALE", "SALE"),
    ]

    expenses = client.get("/pdv/pos/cash/movements?category=expense", headers=auth_headers(token))
    assert expenses.json()["total"] == 1
    assert expenses.json()["rows"][0]["amount"] == "12.00"
