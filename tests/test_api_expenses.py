"""Tests for expenses API endpoints."""

import uuid
from datetime import date

import pytest


PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def _form(category, **overrides):
    data = {
        "amount": "12.50",
        "description": "Lunch with team",
        "category_id": str(category.id),
        "expense_date": "2024-01-15",
    }
    data.update(overrides)
    return data


class TestCreateExpense:

    def test_create(self, client, auth_headers, user, category):
        response = client.post("/api/expenses", headers=auth_headers, data=_form(category))
        assert response.status_code == 201
        data = response.json()
        assert data["amount"] == 12.5
        assert data["description"] == "Lunch with team"
        assert data["expense_date"] == "2024-01-15"
        assert data["user_id"] == str(user.id)
        assert data["receipt_path"] is None
        assert data["category"] == {
            "id": str(category.id),
            "name": "Groceries",
            "color": "#22C55E",
            "icon": "🛒",
        }

    def test_date_defaults_to_today(self, client, auth_headers, category):
        data = _form(category)
        del data["expense_date"]
        response = client.post("/api/expenses", headers=auth_headers, data=data)
        assert response.status_code == 201
        assert response.json()["expense_date"] == date.today().isoformat()

    @pytest.mark.parametrize("amount", ["0", "-5", "abc", "1.005"])
    def test_invalid_amount(self, client, auth_headers, category, amount):
        response = client.post("/api/expenses", headers=auth_headers, data=_form(category, amount=amount))
        assert response.status_code == 400
        assert response.json()["error"] == "invalid_input"

    def test_description_too_long(self, client, auth_headers, category):
        response = client.post(
            "/api/expenses", headers=auth_headers, data=_form(category, description="x" * 201)
        )
        assert response.status_code == 400

    def test_blank_description(self, client, auth_headers, category):
        response = client.post(
            "/api/expenses", headers=auth_headers, data=_form(category, description="   ")
        )
        assert response.status_code == 400

    def test_other_users_category(self, client, headers_for, other_user, category):
        response = client.post("/api/expenses", headers=headers_for(other_user), data=_form(category))
        assert response.status_code == 404
        assert response.json()["detail"] == "Category not found"

    def test_with_receipt(self, client, auth_headers, user, category, receipt_storage):
        response = client.post(
            "/api/expenses",
            headers=auth_headers,
            data=_form(category),
            files={"receipt": ("receipt.png", PNG, "image/png")},
        )
        assert response.status_code == 201
        path = response.json()["receipt_path"]
        assert path.startswith(f"/uploads/{user.id}/receipt-")
        assert path.endswith(".png")
        assert receipt_storage.exists(path)

    def test_failed_save_removes_new_receipt(self, client, auth_headers, user, category,
                                             receipt_storage, db_session, monkeypatch):
        def failing_commit():
            raise RuntimeError("database unavailable")

        monkeypatch.setattr(db_session, "commit", failing_commit)
        with pytest.raises(RuntimeError):
            client.post(
                "/api/expenses",
                headers=auth_headers,
                data=_form(category),
                files={"receipt": ("receipt.png", PNG, "image/png")},
            )

        user_dir = receipt_storage.root / str(user.id)
        assert list(user_dir.glob("*")) == []

    def test_rejects_non_image_receipt(self, client, auth_headers, category):
        response = client.post(
            "/api/expenses",
            headers=auth_headers,
            data=_form(category),
            files={"receipt": ("notes.txt", b"hello", "text/plain")},
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Only image files are allowed"

    def test_requires_auth(self, client, category):
        assert client.post("/api/expenses", data=_form(category)).status_code == 401


class TestReadExpenses:

    def test_get(self, client, auth_headers, user, category, make_expense):
        expense = make_expense(user, category.id, 9.99)
        response = client.get(f"/api/expenses/{expense.id}", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["amount"] == 9.99
        assert response.json()["category"]["name"] == "Groceries"

    def test_get_other_users_expense(self, client, headers_for, other_user, user, category, make_expense):
        expense = make_expense(user, category.id, 5)
        response = client.get(f"/api/expenses/{expense.id}", headers=headers_for(other_user))
        assert response.status_code == 404
        unknown = client.get(f"/api/expenses/{uuid.uuid4()}", headers=headers_for(other_user))
        assert unknown.json() == response.json()

    def test_list(self, client, auth_headers, user, category, make_expense):
        make_expense(user, category.id, 10, expense_date=date(2024, 1, 1))
        make_expense(user, category.id, 30, expense_date=date(2024, 1, 3))
        make_expense(user, category.id, 20, expense_date=date(2024, 1, 2))

        response = client.get("/api/expenses", headers=auth_headers, params={"limit": 2})
        assert response.status_code == 200
        data = response.json()
        assert [e["expense_date"] for e in data["expenses"]] == ["2024-01-03", "2024-01-02"]
        assert data["pagination"] == {
            "current_page": 1,
            "total_pages": 2,
            "total_expenses": 3,
            "has_next_page": True,
            "has_prev_page": False,
        }
        assert data["summary"] == {"total_amount": 60.0, "average_amount": 20.0}

    def test_list_category_filter(self, client, auth_headers, user, make_category, make_expense):
        food = make_category(user, name="Food")
        rent = make_category(user, name="Rent")
        make_expense(user, food.id, 10)
        make_expense(user, rent.id, 800)

        filtered = client.get(
            "/api/expenses", headers=auth_headers, params={"category_id": str(rent.id)}
        ).json()
        assert [e["amount"] for e in filtered["expenses"]] == [800]

        everything = client.get(
            "/api/expenses", headers=auth_headers, params={"category_id": "all"}
        ).json()
        assert everything["pagination"]["total_expenses"] == 2

    def test_list_bad_category_filter(self, client, auth_headers):
        response = client.get("/api/expenses", headers=auth_headers, params={"category_id": "nope"})
        assert response.status_code == 400

    def test_list_excludes_other_users(self, client, auth_headers, other_user, make_category, make_expense):
        theirs = make_category(other_user)
        make_expense(other_user, theirs.id, 10)
        data = client.get("/api/expenses", headers=auth_headers).json()
        assert data["expenses"] == []
        assert data["summary"]["total_amount"] == 0


class TestUpdateExpense:

    def test_partial_update(self, client, auth_headers, user, category, make_expense):
        expense = make_expense(user, category.id, 10, expense_date=date(2024, 1, 1))
        response = client.put(
            f"/api/expenses/{expense.id}", headers=auth_headers, data={"amount": "15.25"}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["amount"] == 15.25
        assert data["description"] == "Lunch"
        assert data["expense_date"] == "2024-01-01"

    def test_change_category(self, client, auth_headers, user, category, make_category, make_expense):
        travel = make_category(user, name="Travel", color="#3B82F6", icon="✈️")
        expense = make_expense(user, category.id, 10)
        response = client.put(
            f"/api/expenses/{expense.id}", headers=auth_headers, data={"category_id": str(travel.id)}
        )
        assert response.status_code == 200
        assert response.json()["category"]["name"] == "Travel"

    def test_change_to_other_users_category(self, client, auth_headers, user, other_user,
                                            category, make_category, make_expense):
        theirs = make_category(other_user, name="Theirs")
        expense = make_expense(user, category.id, 10)
        response = client.put(
            f"/api/expenses/{expense.id}", headers=auth_headers, data={"category_id": str(theirs.id)}
        )
        assert response.status_code == 404

    def test_replace_receipt_removes_old_file(self, client, auth_headers, user, category, receipt_storage):
        created = client.post(
            "/api/expenses",
            headers=auth_headers,
            data=_form(category),
            files={"receipt": ("a.png", PNG, "image/png")},
        ).json()
        old_path = created["receipt_path"]

        response = client.put(
            f"/api/expenses/{created['id']}",
            headers=auth_headers,
            files={"receipt": ("b.jpg", b"\xff\xd8\xff" + b"\x00" * 16, "image/jpeg")},
        )
        assert response.status_code == 200
        new_path = response.json()["receipt_path"]
        assert new_path != old_path
        assert new_path.endswith(".jpg")
        assert receipt_storage.exists(new_path)
        assert not receipt_storage.exists(old_path)

    def test_failed_update_keeps_old_receipt(self, client, auth_headers, user, category,
                                             receipt_storage, db_session, monkeypatch):
        created = client.post(
            "/api/expenses",
            headers=auth_headers,
            data=_form(category),
            files={"receipt": ("a.png", PNG, "image/png")},
        ).json()

        def failing_commit():
            raise RuntimeError("database unavailable")

        monkeypatch.setattr(db_session, "commit", failing_commit)
        with pytest.raises(RuntimeError):
            client.put(
                f"/api/expenses/{created['id']}",
                headers=auth_headers,
                files={"receipt": ("b.png", PNG, "image/png")},
            )

        stored = sorted(p.name for p in (receipt_storage.root / str(user.id)).iterdir())
        assert stored == [created["receipt_path"].rsplit("/", 1)[1]]

    def test_update_other_users_expense(self, client, headers_for, other_user, user, category, make_expense):
        expense = make_expense(user, category.id, 10)
        response = client.put(
            f"/api/expenses/{expense.id}", headers=headers_for(other_user), data={"amount": "1"}
        )
        assert response.status_code == 404


class TestDeleteExpense:

    def test_delete_removes_record_and_receipt(self, client, auth_headers, category, receipt_storage):
        created = client.post(
            "/api/expenses",
            headers=auth_headers,
            data=_form(category),
            files={"receipt": ("a.png", PNG, "image/png")},
        ).json()

        response = client.delete(f"/api/expenses/{created['id']}", headers=auth_headers)
        assert response.status_code == 204
        assert not receipt_storage.exists(created["receipt_path"])
        assert client.get(f"/api/expenses/{created['id']}", headers=auth_headers).status_code == 404

    def test_delete_with_missing_file_still_succeeds(self, client, auth_headers, user, category, make_expense):
        expense = make_expense(user, category.id, 10, receipt_path=f"/uploads/{user.id}/gone.png")
        response = client.delete(f"/api/expenses/{expense.id}", headers=auth_headers)
        assert response.status_code == 204

    def test_delete_other_users_expense(self, client, headers_for, other_user, user, category, make_expense):
        expense = make_expense(user, category.id, 10)
        response = client.delete(f"/api/expenses/{expense.id}", headers=headers_for(other_user))
        assert response.status_code == 404


class TestAggregateEndpoints:

    def test_summary(self, client, auth_headers, user, category, make_expense):
        make_expense(user, category.id, 40)
        make_expense(user, category.id, 60)

        response = client.get("/api/expenses/summary", headers=auth_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["total_expenses"] == 100
        assert data["window_expenses"] == 100
        assert data["category_breakdown"][0]["percentage"] == 100
        assert data["category_breakdown"][0]["transaction_count"] == 2
        assert len(data["recent_transactions"]) == 2

    def test_summary_empty(self, client, auth_headers):
        data = client.get("/api/expenses/summary", headers=auth_headers).json()
        assert data["total_expenses"] == 0
        assert data["category_breakdown"] == []
        assert data["recent_transactions"] == []

    def test_stats(self, client, auth_headers, user, category, make_expense):
        make_expense(user, category.id, 25)
        response = client.get("/api/expenses/stats", headers=auth_headers, params={"period": "week"})
        assert response.status_code == 200
        data = response.json()
        assert data["period"] == "week"
        assert data["total_amount"] == 25
        assert data["daily"] == [{"date": date.today().isoformat(), "total": 25.0, "count": 1}]

    def test_stats_invalid_period(self, client, auth_headers):
        response = client.get("/api/expenses/stats", headers=auth_headers, params={"period": "decade"})
        assert response.status_code == 400
        assert response.json()["error"] == "invalid_input"

    def test_summary_requires_auth(self, client):
        assert client.get("/api/expenses/summary").status_code == 401
