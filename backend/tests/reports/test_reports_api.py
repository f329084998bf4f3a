from decimal import Decimal


def _post(client, headers, **kw):
    payload = {"description": "x", "type": "income", "amount": "10.00"}
    payload.update(kw)
    r = client.post("/transactions", json=payload, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


def test_summary_nets_reversals_and_groups_by_category(client, auth_header, company):
    sale = _post(client, auth_header, amount="100.00", category="Vendas")
    _post(client, auth_header, type="expense", amount="30.00", category="Aluguel")
    _post(client, auth_header, amount="50.00", status="pending", category="Vendas")
    client.post(f"/transactions/{sale['id']}/reverse", headers=auth_header)
    _post(client, auth_header, amount="20.00", category="Vendas")

    r = client.get("/reports/summary", headers=auth_header)
    assert r.status_code == 200, r.text
    body = r.json()

    assert body["company_id"] == company.id
    totals = body["totals"]
    assert Decimal(totals["entradas"]) == Decimal("20.00")
    assert Decimal(totals["saidas"]) == Decimal("30.00")
    assert Decimal(totals["saldo"]) == Decimal("-10.00")
    assert Decimal(totals["a_receber"]) == Decimal("50.00")
    assert totals["qtd_transacoes"] == 5

    cats = {c["category"]: c for c in body["by_category"]}
    assert Decimal(cats["Vendas"]["entradas"]) == Decimal("20.00")
    assert Decimal(cats["Aluguel"]["saidas"]) == Decimal("30.00")


def test_summary_rejects_bad_dates(client, auth_header):
    r = client.get("/reports/summary", params={"start": "31/01/2026"}, headers=auth_header)
    assert r.status_code == 422
    assert r.json()["detail"]["error_code"] == "INVALID_DATE"

    r = client.get("/reports/summary", params={"start": "2026-02-01", "end": "2026-01-01"}, headers=auth_header)
    assert r.status_code == 422
    assert r.json()["detail"]["error_code"] == "INVALID_PERIOD"


def test_summary_for_empty_period(client, auth_header):
    _post(client, auth_header)

    r = client.get("/reports/summary", params={"start": "2000-01-01", "end": "2000-01-31"}, headers=auth_header)
    assert r.status_code == 200
    body = r.json()
    assert body["period"] == {"start": "2000-01-01", "end": "2000-01-31"}
    assert body["totals"]["qtd_transacoes"] == 0
    assert body["by_category"] == []


def test_streams_split_product_and_service(client, auth_header):
    sale = {
        "customer": "João",
        "items": [
            {"kind": "product", "quantity": 1, "unit_price": "70.00"},
            {"kind": "service", "quantity": 1, "unit_price": "30.00"},
        ],
        "payment_method": "pix",
    }
    assert client.post("/sales", json=sale, headers=auth_header).status_code == 201
    _post(client, auth_header, type="expense", amount="15.00")

    r = client.get("/reports/streams", headers=auth_header)
    assert r.status_code == 200, r.text
    body = r.json()
    assert Decimal(body["vendas_produtos"]) == Decimal("70.00")
    assert Decimal(body["vendas_servicos"]) == Decimal("30.00")
    assert Decimal(body["despesas"]) == Decimal("15.00")


def test_daily_series(client, auth_header):
    _post(client, auth_header, amount="12.00")
    _post(client, auth_header, type="expense", amount="2.00")

    r = client.get("/reports/daily", headers=auth_header)
    assert r.status_code == 200
    series = r.json()["series"]
    assert len(series) == 1
    assert Decimal(series[0]["saldo"]) == Decimal("10.00")


def test_statement_pdf(client, auth_header):
    _post(client, auth_header, description="Venda com acentuação", amount="1234.56")

    r = client.get("/reports/statement/pdf", headers=auth_header)
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("application/pdf")
    assert r.content.startswith(b"%PDF")


def test_reports_require_token(client):
    assert client.get("/reports/summary").status_code == 401
    assert client.get("/reports/statement/pdf").status_code == 401
