from decimal import Decimal


def _create(client, headers, **kw):
    payload = {"description": "Lançamento", "type": "income", "amount": "100.00"}
    payload.update(kw)
    r = client.post("/transactions", json=payload, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


def _balance(client, headers) -> Decimal:
    r = client.get("/transactions/balance", headers=headers)
    assert r.status_code == 200, r.text
    return Decimal(r.json()["balance"])


def test_transactions_require_token(client):
    assert client.get("/transactions").status_code == 401
    assert client.post("/transactions", json={}).status_code == 401
    assert client.get("/transactions", headers={"Authorization": "Bearer lixo"}).status_code == 401


def test_manual_entry_defaults(client, auth_header, company):
    tx = _create(client, auth_header)

    assert tx["company_id"] == company.id
    assert tx["status"] == "paid"
    assert tx["reference_type"] == "manual"
    assert tx["origin"] == "manual"
    assert Decimal(tx["amount"]) == Decimal("100.00")


def test_initial_balance_entry_counts_in_balance(client, auth_header):
    _create(client, auth_header, description="Saldo inicial", amount="250.00", reference_type="initial")

    assert _balance(client, auth_header) == Decimal("250.00")


def test_manual_entry_rejects_reserved_reference_types(client, auth_header):
    for ref in ("reversal", "sale"):
        r = client.post(
            "/transactions",
            json={"description": "x", "type": "income", "amount": "1", "reference_type": ref},
            headers=auth_header,
        )
        assert r.status_code == 422


def test_negative_amount_is_rejected(client, auth_header):
    r = client.post(
        "/transactions", json={"description": "x", "type": "expense", "amount": "-1"}, headers=auth_header
    )
    assert r.status_code == 422
    assert _balance(client, auth_header) == Decimal("0")


def test_reverse_once_then_conflict(client, auth_header):
    tx = _create(client, auth_header, description="Venda balcão", amount="50.00")
    assert _balance(client, auth_header) == Decimal("50.00")

    r = client.post(f"/transactions/{tx['id']}/reverse", headers=auth_header)
    assert r.status_code == 201, r.text
    rev = r.json()
    assert rev["type"] == "expense"
    assert rev["reference_type"] == "reversal"
    assert rev["reference_id"] == str(tx["id"])
    assert rev["description"] == "Estorno: Venda balcão"
    assert _balance(client, auth_header) == Decimal("0")

    r2 = client.post(f"/transactions/{tx['id']}/reverse", headers=auth_header)
    assert r2.status_code == 409
    detail = r2.json()["detail"]
    assert detail["error_code"] == "DUPLICATE_REVERSAL"
    assert detail["original_id"] == tx["id"]
    assert detail["reversal_id"] == rev["id"]
    assert _balance(client, auth_header) == Decimal("0")

    got = client.get(f"/transactions/{tx['id']}/reversal", headers=auth_header)
    assert got.status_code == 200
    assert got.json()["id"] == rev["id"]


def test_reversal_of_reversal_is_rejected(client, auth_header):
    tx = _create(client, auth_header)
    rev = client.post(f"/transactions/{tx['id']}/reverse", headers=auth_header).json()

    r = client.post(f"/transactions/{rev['id']}/reverse", headers=auth_header)
    assert r.status_code == 422
    assert r.json()["detail"]["error_code"] == "VALIDATION_ERROR"


def test_reversal_lookup_404_when_not_reversed(client, auth_header):
    tx = _create(client, auth_header)

    r = client.get(f"/transactions/{tx['id']}/reversal", headers=auth_header)
    assert r.status_code == 404
    assert r.json()["detail"]["error_code"] == "NOT_FOUND"


def test_unknown_transaction_is_404(client, auth_header):
    assert client.get("/transactions/999999", headers=auth_header).status_code == 404
    assert client.post("/transactions/999999/reverse", headers=auth_header).status_code == 404


def test_balance_ignores_pending_until_settled(client, auth_header):
    _create(client, auth_header, amount="100.00")
    pending = _create(client, auth_header, amount="40.00", status="pending", due_date="2026-12-01")
    _create(client, auth_header, type="expense", amount="30.00")

    r = client.get("/transactions/balance", headers=auth_header)
    body = r.json()
    assert Decimal(body["balance"]) == Decimal("70.00")
    assert Decimal(body["pending_receivables"]) == Decimal("40.00")
    assert body["qtd_transacoes"] == 3

    s = client.post(f"/transactions/{pending['id']}/settle", headers=auth_header)
    assert s.status_code == 200, s.text
    assert s.json()["status"] == "paid"
    assert s.json()["due_date"] == "2026-12-01"
    assert _balance(client, auth_header) == Decimal("110.00")

    again = client.post(f"/transactions/{pending['id']}/settle", headers=auth_header)
    assert again.status_code == 422


def test_amend_is_reversal_plus_replacement(client, auth_header):
    tx = _create(client, auth_header, description="Serviço", amount="80.00")

    r = client.put(
        f"/transactions/{tx['id']}",
        json={"description": "Serviço (corrigido)", "type": "income", "amount": "95.00"},
        headers=auth_header,
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["reversal"]["reference_id"] == str(tx["id"])
    assert body["replacement"]["reference_id"] == str(tx["id"])
    assert Decimal(body["replacement"]["amount"]) == Decimal("95.00")
    assert body["reversal"]["batch_id"] == body["replacement"]["batch_id"]
    assert _balance(client, auth_header) == Decimal("95.00")

    # o original continua lá, intacto
    orig = client.get(f"/transactions/{tx['id']}", headers=auth_header).json()
    assert Decimal(orig["amount"]) == Decimal("80.00")

    again = client.put(
        f"/transactions/{tx['id']}",
        json={"description": "de novo", "type": "income", "amount": "1.00"},
        headers=auth_header,
    )
    assert again.status_code == 409


def test_list_filters(client, auth_header):
    _create(client, auth_header, category="Vendas")
    _create(client, auth_header, type="expense", amount="10.00", category="Aluguel")
    _create(client, auth_header, amount="5.00", status="pending", category="Vendas")

    all_rows = client.get("/transactions", headers=auth_header).json()
    assert len(all_rows) == 3

    expenses = client.get("/transactions", params={"type": "expense"}, headers=auth_header).json()
    assert [r["category"] for r in expenses] == ["Aluguel"]

    pending = client.get("/transactions", params={"status": "pending"}, headers=auth_header).json()
    assert len(pending) == 1

    vendas = client.get("/transactions", params={"category": "Vendas"}, headers=auth_header).json()
    assert len(vendas) == 2

    page = client.get("/transactions", params={"limit": 1, "offset": 1}, headers=auth_header).json()
    assert len(page) == 1

    future = client.get("/transactions", params={"start": "2999-01-01"}, headers=auth_header).json()
    assert future == []


def test_list_rejects_bad_date(client, auth_header):
    r = client.get("/transactions", params={"start": "ontem"}, headers=auth_header)
    assert r.status_code == 422
    assert r.json()["detail"]["error_code"] == "INVALID_DATE"
