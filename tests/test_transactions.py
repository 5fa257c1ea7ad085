from datetime import datetime, timedelta

import pytest

from finance_tracker import config

from conftest import API, signed_in


def _create(client, headers, category, amount=10.0, when="2024-03-10T12:00:00Z", **fields):
    body = {
        "categoryId": category["id"],
        "amount": amount,
        "description": fields.pop("description", "Test transaction"),
        "transactionDate": when,
    }
    body.update(fields)
    return client.post(f"{API}/transactions", headers=headers, json=body)


def test_create_derives_type_from_category(client, auth_headers, categories):
    response = _create(client, auth_headers, categories["Salary"], amount=1500, tags=["Monthly", "work"])
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["type"] == "income"
    assert data["amount"] == 1500
    assert data["tags"] == ["monthly", "work"]
    assert data["yearMonth"] == "2024-03"
    assert data["year"] == 2024 and data["month"] == 3
    assert data["category"] == {
        "id": categories["Salary"]["id"],
        "name": "Salary",
        "color": "#4CAF50",
        "icon": "briefcase",
        "type": "income",
    }


def test_create_defaults_date_to_now(client, auth_headers, categories):
    body = {"categoryId": categories["Shopping"]["id"], "amount": 5, "description": "Socks"}
    response = client.post(f"{API}/transactions", headers=auth_headers, json=body)
    assert response.status_code == 201
    now = datetime.utcnow()
    assert response.json()["data"]["yearMonth"] == f"{now.year:04d}-{now.month:02d}"


def test_negative_income_amount_is_rejected(client, auth_headers, categories):
    response = _create(client, auth_headers, categories["Salary"], amount=-100, type="income")
    assert response.status_code == 400
    assert "amount" in [d["field"] for d in response.json()["details"]]


@pytest.mark.parametrize("fields,field", [
    ({"amount": 0}, "amount"),
    ({"amount": 12.345}, "amount"),
    ({"amount": 1_000_000_000}, "amount"),
    ({"description": ""}, "description"),
    ({"tags": ["a", "b", "c", "d"]}, "tags"),
    ({"tags": ["no spaces"]}, "tags"),
    ({"transactionDate": "1899-12-31T00:00:00Z"}, "transactionDate"),
    ({"categoryId": "123"}, "categoryId"),
])
def test_create_validation(client, auth_headers, categories, fields, field):
    response = _create(client, auth_headers, categories["Shopping"], **fields)
    assert response.status_code == 400
    assert field in [d["field"] for d in response.json()["details"]]


def test_transaction_date_too_far_in_future(client, auth_headers, categories):
    future = (datetime.utcnow() + timedelta(days=400)).strftime("%Y-%m-%dT%H:%M:%SZ")
    response = _create(client, auth_headers, categories["Shopping"], when=future)
    assert response.status_code == 400


def test_type_mismatch(client, auth_headers, categories):
    response = _create(client, auth_headers, categories["Shopping"], type="income")
    assert response.status_code == 400
    assert response.json()["code"] == "TYPE_MISMATCH"


def test_deleted_or_foreign_category(client, auth_headers, categories, outbox):
    client.delete(f"{API}/categories/{categories['Shopping']['id']}", headers=auth_headers)
    response = _create(client, auth_headers, categories["Shopping"])
    assert response.status_code == 404
    assert response.json()["code"] == "CATEGORY_NOT_FOUND"

    other = signed_in(client, email="other@example.com")
    response = _create(client, other, categories["Salary"])
    assert response.status_code == 404


def test_daily_limit(client, auth_headers, categories, monkeypatch):
    monkeypatch.setattr(config, "DAILY_TRANSACTION_LIMIT", 2)
    assert _create(client, auth_headers, categories["Shopping"]).status_code == 201
    assert _create(client, auth_headers, categories["Shopping"]).status_code == 201
    response = _create(client, auth_headers, categories["Shopping"])
    assert response.status_code == 429
    assert response.json()["code"] == "DAILY_LIMIT_EXCEEDED"
    assert _create(client, auth_headers, categories["Shopping"], when="2024-03-11T08:00:00Z").status_code == 201


def test_get_is_idempotent(client, auth_headers, categories):
    created = _create(client, auth_headers, categories["Shopping"], notes="gift").json()["data"]
    first = client.get(f"{API}/transactions/{created['id']}", headers=auth_headers)
    second = client.get(f"{API}/transactions/{created['id']}", headers=auth_headers)
    assert first.status_code == second.status_code == 200
    assert first.json()["data"] == second.json()["data"]
    assert first.json()["data"]["notes"] == "gift"


def test_other_users_transaction_is_not_found(client, auth_headers, categories, outbox):
    created = _create(client, auth_headers, categories["Shopping"]).json()["data"]
    other = signed_in(client, email="other@example.com")
    response = client.get(f"{API}/transactions/{created['id']}", headers=other)
    assert response.status_code == 404
    assert response.json()["code"] == "TRANSACTION_NOT_FOUND"


def test_update_transaction(client, auth_headers, categories):
    created = _create(client, auth_headers, categories["Shopping"]).json()["data"]
    response = client.patch(f"{API}/transactions/{created['id']}", headers=auth_headers, json={
        "categoryId": categories["Freelance"]["id"],
        "amount": 99.99,
        "transactionDate": "2024-05-02T09:30:00Z",
    })
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["type"] == "income"
    assert data["amount"] == 99.99
    assert data["yearMonth"] == "2024-05"
    assert data["category"]["name"] == "Freelance"


def test_update_rejects_type_mismatch(client, auth_headers, categories):
    created = _create(client, auth_headers, categories["Shopping"]).json()["data"]
    response = client.patch(f"{API}/transactions/{created['id']}", headers=auth_headers, json={"type": "income"})
    assert response.status_code == 400
    assert response.json()["code"] == "TYPE_MISMATCH"


@pytest.mark.parametrize("field", ["description", "amount", "categoryId", "transactionDate", "tags"])
def test_update_rejects_null(client, auth_headers, categories, field):
    created = _create(client, auth_headers, categories["Shopping"]).json()["data"]
    response = client.patch(f"{API}/transactions/{created['id']}", headers=auth_headers, json={field: None})
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"

    listed = client.get(f"{API}/transactions", headers=auth_headers)
    assert listed.status_code == 200
    assert listed.json()["data"]["transactions"][0]["description"] == "Test transaction"


def test_update_clears_notes(client, auth_headers, categories):
    created = _create(client, auth_headers, categories["Shopping"], notes="gift").json()["data"]
    response = client.patch(f"{API}/transactions/{created['id']}", headers=auth_headers, json={"notes": None})
    assert response.status_code == 200
    assert response.json()["data"]["notes"] is None


def test_delete_is_soft(client, auth_headers, categories, db):
    created = _create(client, auth_headers, categories["Shopping"]).json()["data"]
    response = client.delete(f"{API}/transactions/{created['id']}", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["message"] == "Transaction deleted"

    assert client.get(f"{API}/transactions/{created['id']}", headers=auth_headers).status_code == 404
    assert db["transaction"].count_documents({"is_deleted": True}) == 1
    listing = client.get(f"{API}/transactions", headers=auth_headers).json()["data"]
    assert listing["total"] == 0


def test_clone_with_overrides(client, auth_headers, categories):
    source = _create(client, auth_headers, categories["Shopping"], amount=40, tags=["gift"],
                     description="Birthday present").json()["data"]
    response = client.post(f"{API}/transactions/{source['id']}/clone", headers=auth_headers,
                           json={"amount": 55.5})
    assert response.status_code == 201
    clone = response.json()["data"]
    assert clone["id"] != source["id"]
    assert clone["amount"] == 55.5
    assert clone["description"] == "Birthday present"
    assert clone["tags"] == ["gift"]
    assert clone["categoryId"] == source["categoryId"]
    assert clone["transactionDate"] != source["transactionDate"]


def test_clone_without_body(client, auth_headers, categories):
    source = _create(client, auth_headers, categories["Shopping"], amount=40).json()["data"]
    response = client.post(f"{API}/transactions/{source['id']}/clone", headers=auth_headers)
    assert response.status_code == 201
    assert response.json()["data"]["amount"] == 40


# ----------------------
# Listing
# ----------------------

def test_pagination(client, auth_headers, categories):
    for i in range(45):
        day = 1 + i % 28
        assert _create(client, auth_headers, categories["Shopping"], amount=i + 1,
                       when=f"2024-02-{day:02d}T10:00:00Z").status_code == 201

    response = client.get(f"{API}/transactions", headers=auth_headers, params={"page": 2, "limit": 20})
    assert response.status_code == 200
    data = response.json()["data"]
    assert len(data["transactions"]) == 20
    assert data["total"] == 45
    assert data["pagination"] == {"page": 2, "limit": 20, "totalPages": 3, "hasNext": True, "hasPrev": True}

    last = client.get(f"{API}/transactions", headers=auth_headers, params={"page": 3, "limit": 20}).json()["data"]
    assert len(last["transactions"]) == 5
    assert last["pagination"]["hasNext"] is False


def test_list_filters_and_summary(client, auth_headers, categories):
    _create(client, auth_headers, categories["Salary"], amount=1000, tags=["work"])
    _create(client, auth_headers, categories["Shopping"], amount=200, tags=["gift"])
    _create(client, auth_headers, categories["Food & Dining"], amount=50, when="2024-04-01T10:00:00Z")

    everything = client.get(f"{API}/transactions", headers=auth_headers).json()["data"]
    assert everything["summary"] == {
        "totalIncome": 1000, "totalExpenses": 250, "incomeCount": 1, "expenseCount": 2, "netAmount": 750,
    }
    dates = [t["transactionDate"] for t in everything["transactions"]]
    assert dates == sorted(dates, reverse=True)

    expenses = client.get(f"{API}/transactions", headers=auth_headers, params={"type": "expense"}).json()["data"]
    assert expenses["total"] == 2

    tagged = client.get(f"{API}/transactions", headers=auth_headers, params={"tags": "gift,work"}).json()["data"]
    assert tagged["total"] == 2

    ranged = client.get(f"{API}/transactions", headers=auth_headers, params={
        "minAmount": 100, "maxAmount": 500,
    }).json()["data"]
    assert [t["amount"] for t in ranged["transactions"]] == [200]

    march = client.get(f"{API}/transactions", headers=auth_headers, params={
        "startDate": "2024-03-01T00:00:00Z", "endDate": "2024-03-31T23:59:59Z",
    }).json()["data"]
    assert march["total"] == 2

    by_amount = client.get(f"{API}/transactions", headers=auth_headers, params={
        "sortBy": "amount", "sortOrder": "asc",
    }).json()["data"]
    assert [t["amount"] for t in by_amount["transactions"]] == [50, 200, 1000]


@pytest.mark.parametrize("params,field", [
    ({"minAmount": 500, "maxAmount": 100}, "maxAmount"),
    ({"startDate": "2024-04-01T00:00:00Z", "endDate": "2024-03-01T00:00:00Z"}, "endDate"),
    ({"limit": 101}, "limit"),
    ({"page": 0}, "page"),
    ({"sortOrder": "sideways"}, "sortOrder"),
])
def test_list_query_validation(client, auth_headers, params, field):
    response = client.get(f"{API}/transactions", headers=auth_headers, params=params)
    assert response.status_code == 400
    assert field in [d["field"] for d in response.json()["details"]]


# ----------------------
# Reporting
# ----------------------

def test_monthly_summary(client, auth_headers, categories):
    _create(client, auth_headers, categories["Salary"], amount=100, when="2024-03-05T10:00:00Z")
    _create(client, auth_headers, categories["Freelance"], amount=50, when="2024-03-20T10:00:00Z")
    _create(client, auth_headers, categories["Food & Dining"], amount=30, when="2024-03-21T10:00:00Z")
    _create(client, auth_headers, categories["Food & Dining"], amount=999, when="2024-04-01T10:00:00Z")

    response = client.get(f"{API}/transactions/summary", headers=auth_headers, params={"year": 2024, "month": 3})
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["yearMonth"] == "2024-03"
    assert data["income"]["total"] == 150
    assert data["income"]["count"] == 2
    assert data["income"]["avgAmount"] == 75
    assert data["expenses"]["total"] == 30
    assert data["expenses"]["count"] == 1
    assert data["netAmount"] == 120


def test_summary_for_date_range(client, auth_headers, categories):
    _create(client, auth_headers, categories["Salary"], amount=100, when="2024-03-05T10:00:00Z")
    _create(client, auth_headers, categories["Food & Dining"], amount=30, when="2024-04-02T10:00:00Z")
    response = client.get(f"{API}/transactions/summary", headers=auth_headers, params={
        "startDate": "2024-03-01T00:00:00Z", "endDate": "2024-04-30T00:00:00Z",
    })
    data = response.json()["data"]
    assert data["year"] is None
    assert data["income"]["total"] == 100
    assert data["expenses"]["total"] == 30
    assert data["netAmount"] == 70


def test_summary_defaults_to_current_month(client, auth_headers, categories):
    body = {"categoryId": categories["Salary"]["id"], "amount": 10, "description": "Tip"}
    client.post(f"{API}/transactions", headers=auth_headers, json=body)
    data = client.get(f"{API}/transactions/summary", headers=auth_headers).json()["data"]
    now = datetime.utcnow()
    assert data["yearMonth"] == f"{now.year:04d}-{now.month:02d}"
    assert data["income"]["count"] == 1


def test_summary_requires_year_with_month(client, auth_headers):
    response = client.get(f"{API}/transactions/summary", headers=auth_headers, params={"year": 2024})
    assert response.status_code == 400


def test_summary_ignores_deleted_transactions(client, auth_headers, categories):
    created = _create(client, auth_headers, categories["Salary"], amount=100).json()["data"]
    client.delete(f"{API}/transactions/{created['id']}", headers=auth_headers)
    data = client.get(f"{API}/transactions/summary", headers=auth_headers,
                      params={"year": 2024, "month": 3}).json()["data"]
    assert data["income"]["count"] == 0
    assert data["netAmount"] == 0


def test_category_breakdown(client, auth_headers, categories):
    _create(client, auth_headers, categories["Food & Dining"], amount=30)
    _create(client, auth_headers, categories["Food & Dining"], amount=50)
    _create(client, auth_headers, categories["Shopping"], amount=120)
    _create(client, auth_headers, categories["Salary"], amount=1000)

    response = client.get(f"{API}/transactions/category-breakdown", headers=auth_headers,
                          params={"type": "expense"})
    assert response.status_code == 200
    items = response.json()["data"]
    assert [i["categoryName"] for i in items] == ["Shopping", "Food & Dining"]
    food = items[1]
    assert food["total"] == 80
    assert food["count"] == 2
    assert food["avgAmount"] == 40
    assert food["categoryColor"] == "#F44336"
    assert food["percentage"] == 40

    both = client.get(f"{API}/transactions/category-breakdown", headers=auth_headers).json()["data"]
    assert [i["categoryName"] for i in both][0] == "Salary"
    assert both[0]["percentage"] == 100
