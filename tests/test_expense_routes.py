"""Tests for the expense pages and their listing repository."""

from __future__ import annotations

import io
import logging
from datetime import date, datetime

import pytest
from sqlmodel import select
from werkzeug.datastructures import FileStorage

from familybudget.blueprints.expenses.repository import (
    SQLModelExpenseRepository,
    clamp_paging,
    parse_date,
)
from familybudget.extensions import session_scope
from familybudget.models import Expense
from familybudget.services.receipts import ReceiptStorage

from tests.conftest import login


@pytest.fixture()
def household(factory):
    admin = factory.user("admin@example.com", "Admin")
    family = factory.family("Smith", 1000.0, admin=admin)
    member = factory.user("member@example.com", "Member", family=family)
    outsider = factory.user("outsider@example.com", "Outsider")
    groceries = factory.category("Groceries")
    return admin, member, outsider, groceries


def test_clamp_paging():
    assert clamp_paging(0, 0) == (1, 20)
    assert clamp_paging(3, 1) == (3, 5)
    assert clamp_paging(2, 500) == (2, 100)


def test_parse_date_bounds():
    assert parse_date("2024-05-01", is_start=True) == datetime(2024, 5, 1)
    assert parse_date("2024-05-01", is_start=False).hour == 23
    assert parse_date("yesterday", is_start=True) is None


def test_repository_filters(factory, household):
    admin, _, _, groceries = household
    factory.expense(admin, 12.0, date(2024, 5, 1), category=groceries, name="Bakery")
    factory.expense(admin, 80.0, date(2024, 5, 10), category=groceries, name="Market", receipt_image="r.png")
    factory.expense(admin, 45.0, date(2024, 6, 2), name="Cinema")

    with session_scope() as session:
        repo = SQLModelExpenseRepository(session)

        def names(**filters):
            result = repo.list_expenses(user_ids=[admin.id], filters=filters, page=1, per_page=20)
            return [row.name for row in result.expenses]

        assert names() == ["Cinema", "Market", "Bakery"]
        assert names(q="mark") == ["Market"]
        assert names(category=str(groceries.id)) == ["Market", "Bakery"]
        assert names(date_from="2024-05-10", date_to="2024-05-31") == ["Market"]
        assert names(min_amount="40", max_amount="50") == ["Cinema"]
        assert names(has_receipt="yes") == ["Market"]
        assert names(has_receipt="no") == ["Cinema", "Bakery"]
        assert names(sort="amount", direction="asc") == ["Bakery", "Cinema", "Market"]
        assert names(sort="name") == ["Market", "Cinema", "Bakery"]

        result = repo.list_expenses(user_ids=[admin.id], filters={}, page=1, per_page=20)
        assert result.total_amount == 137.0
        assert result.pagination.total == 3


def test_local_timestamps_are_stored_as_given(factory, household):
    admin, _, _, _ = household
    expense = factory.expense(admin, 12.5, datetime(2024, 5, 3, 14, 30))

    with session_scope() as session:
        stored = session.get(Expense, expense.id).occurred_at

    assert stored == datetime(2024, 5, 3, 14, 30)
    assert stored.tzinfo is None


def test_repository_pagination(factory, household):
    admin, _, _, _ = household
    for day in range(1, 13):
        factory.expense(admin, float(day), date(2024, 5, day), name=f"Item {day}")

    with session_scope() as session:
        result = SQLModelExpenseRepository(session).list_expenses(
            user_ids=[admin.id], filters={}, page=3, per_page=5
        )

    assert [row.name for row in result.expenses] == ["Item 2", "Item 1"]
    assert result.pagination.pages == 3
    assert result.pagination.first_item == 11
    assert result.pagination.last_item == 12
    assert result.pagination.has_prev
    assert not result.pagination.has_next
    assert result.total_amount == 78.0


# =============================================================================
# Routes
# =============================================================================


def test_list_shows_only_own_expenses(client, factory, household):
    admin, member, _, _ = household
    factory.expense(admin, 10.0, date(2024, 5, 1), name="Admin lunch")
    factory.expense(member, 20.0, date(2024, 5, 1), name="Member lunch")
    login(client, "member@example.com")

    body = client.get("/expenses/").get_data(as_text=True)

    assert "Member lunch" in body
    assert "Admin lunch" not in body


def test_admin_lists_member_and_whole_family(client, factory, household):
    admin, member, _, _ = household
    factory.expense(admin, 10.0, date(2024, 5, 1), name="Admin lunch")
    factory.expense(member, 20.0, date(2024, 5, 1), name="Member lunch")
    login(client, "admin@example.com")

    body = client.get(f"/expenses/?user={member.id}").get_data(as_text=True)
    assert "Member lunch" in body
    assert "Admin lunch" not in body

    body = client.get("/expenses/?user=__all__").get_data(as_text=True)
    assert "Member lunch" in body
    assert "Admin lunch" in body
    assert "All family members" in body


def test_member_cannot_list_others(client, household):
    admin, _, _, _ = household
    login(client, "member@example.com")

    assert client.get(f"/expenses/?user={admin.id}").status_code == 403
    assert client.get("/expenses/?user=__all__").status_code == 403
    assert client.get("/expenses/?user=9999").status_code == 404


def test_create_expense(client, household):
    _, member, _, groceries = household
    login(client, "member@example.com")

    response = client.post(
        "/expenses/new",
        data={
            "name": "Groceries run",
            "amount": "42.456",
            "occurred_at": "2024-05-03",
            "category_id": str(groceries.id),
        },
    )

    assert response.status_code == 302
    with session_scope() as session:
        expense = session.exec(select(Expense)).one()
    assert response.headers["Location"].endswith(f"/expenses/{expense.id}")
    assert expense.user_id == member.id
    assert expense.amount == 42.46
    assert expense.occurred_at == datetime(2024, 5, 3)


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"amount": "0"}, "Amount must be greater than zero."),
        ({"amount": "-3"}, "Amount must be greater than zero."),
        ({"name": ""}, "Name is required."),
        ({"occurred_at": "03/05/2024"}, "Enter a valid date (YYYY-MM-DD)."),
        ({"category_id": "9999"}, "Choose an existing category."),
    ],
)
def test_create_expense_validation(client, household, overrides, message):
    _, _, _, groceries = household
    login(client, "member@example.com")
    data = {
        "name": "Lunch",
        "amount": "10",
        "occurred_at": "2024-05-03",
        "category_id": str(groceries.id),
    }
    data.update(overrides)

    response = client.post("/expenses/new", data=data)

    assert response.status_code == 400
    assert message in response.get_data(as_text=True)


def test_member_cannot_create_for_someone_else(client, household):
    admin, _, _, groceries = household
    login(client, "member@example.com")

    response = client.post(
        "/expenses/new",
        data={
            "name": "Lunch",
            "amount": "10",
            "occurred_at": "2024-05-03",
            "category_id": str(groceries.id),
            "user_id": str(admin.id),
        },
    )

    assert response.status_code == 403


def test_admin_creates_for_member(client, household):
    _, member, _, groceries = household
    login(client, "admin@example.com")

    response = client.post(
        "/expenses/new",
        data={
            "name": "Pocket money",
            "amount": "15",
            "occurred_at": "2024-05-03",
            "category_id": str(groceries.id),
            "user_id": str(member.id),
        },
    )

    assert response.status_code == 302
    with session_scope() as session:
        assert session.exec(select(Expense)).one().user_id == member.id


def test_view_edit_delete_access(client, factory, household):
    admin, member, outsider, _ = household
    expense = factory.expense(member, 20.0, date(2024, 5, 1), name="Member lunch")

    login(client, "outsider@example.com")
    assert client.get(f"/expenses/{expense.id}").status_code == 403
    assert client.post(f"/expenses/{expense.id}/delete").status_code == 403
    assert client.get("/expenses/9999").status_code == 404
    client.post("/logout")

    login(client, "admin@example.com")
    assert client.get(f"/expenses/{expense.id}").status_code == 200
    assert client.get(f"/expenses/{expense.id}/edit").status_code == 200


def test_edit_keeps_owner_when_not_submitted(client, factory, household):
    admin, member, _, groceries = household
    expense = factory.expense(member, 20.0, date(2024, 5, 1), name="Member lunch")
    login(client, "admin@example.com")

    response = client.post(
        f"/expenses/{expense.id}/edit",
        data={
            "name": "Team lunch",
            "amount": "25",
            "occurred_at": "2024-05-02",
            "category_id": str(groceries.id),
        },
    )

    assert response.status_code == 302
    with session_scope() as session:
        updated = session.get(Expense, expense.id)
    assert updated.name == "Team lunch"
    assert updated.amount == 25.0
    assert updated.user_id == member.id


def test_delete_expense(client, factory, household):
    _, member, _, _ = household
    expense = factory.expense(member, 20.0, date(2024, 5, 1))
    login(client, "member@example.com")

    response = client.post(f"/expenses/{expense.id}/delete", follow_redirects=True)

    assert response.status_code == 200
    assert "Expense deleted." in response.get_data(as_text=True)
    with session_scope() as session:
        assert session.get(Expense, expense.id) is None


def test_receipt_upload_and_download(app, client, household):
    _, _, _, groceries = household
    login(client, "member@example.com")

    response = client.post(
        "/expenses/new",
        data={
            "name": "Hardware",
            "amount": "19.99",
            "occurred_at": "2024-05-03",
            "category_id": str(groceries.id),
            "receipt_image": (io.BytesIO(b"\x89PNG fake"), "my receipt.png"),
        },
        content_type="multipart/form-data",
    )
    assert response.status_code == 302

    with session_scope() as session:
        expense = session.exec(select(Expense)).one()
    assert expense.receipt_image.endswith(".png")
    assert (app.config["RECEIPTS_DIR"] / expense.receipt_image).is_file()

    download = client.get(f"/expenses/{expense.id}/receipt")
    assert download.status_code == 200
    assert download.data == b"\x89PNG fake"
    download.close()

    client.post(f"/expenses/{expense.id}/delete")
    assert not (app.config["RECEIPTS_DIR"] / expense.receipt_image).exists()


def test_receipt_with_wrong_type_is_rejected(client, household):
    _, _, _, groceries = household
    login(client, "member@example.com")

    response = client.post(
        "/expenses/new",
        data={
            "name": "Hardware",
            "amount": "19.99",
            "occurred_at": "2024-05-03",
            "category_id": str(groceries.id),
            "receipt_image": (io.BytesIO(b"MZ"), "virus.exe"),
        },
        content_type="multipart/form-data",
    )

    assert response.status_code == 400
    assert "Receipt must be an image or PDF file." in response.get_data(as_text=True)


def test_missing_receipt_is_not_found(client, factory, household):
    _, member, _, _ = household
    expense = factory.expense(member, 5.0, date(2024, 5, 1))
    login(client, "member@example.com")

    assert client.get(f"/expenses/{expense.id}/receipt").status_code == 404


def test_replacing_receipt_removes_old_file_after_save(app, client, factory, household):
    _, member, _, groceries = household
    receipts_dir = app.config["RECEIPTS_DIR"]
    receipts_dir.mkdir(parents=True, exist_ok=True)
    (receipts_dir / "old-receipt.png").write_bytes(b"old")
    expense = factory.expense(member, 19.99, date(2024, 5, 3), category=groceries, receipt_image="old-receipt.png")
    login(client, "member@example.com")

    response = client.post(
        f"/expenses/{expense.id}/edit",
        data={
            "name": "Hardware",
            "amount": "19.99",
            "occurred_at": "2024-05-03",
            "category_id": str(groceries.id),
            "receipt_image": (io.BytesIO(b"new"), "new receipt.png"),
        },
        content_type="multipart/form-data",
    )

    assert response.status_code == 302
    with session_scope() as session:
        stored = session.get(Expense, expense.id).receipt_image
    assert stored != "old-receipt.png"
    assert (receipts_dir / stored).read_bytes() == b"new"
    assert not (receipts_dir / "old-receipt.png").exists()


def test_storing_receipt_keeps_existing_files(app, tmp_path, caplog):
    storage = ReceiptStorage(tmp_path / "store")
    storage.directory.mkdir()
    (storage.directory / "old-receipt.png").write_bytes(b"old")

    with caplog.at_level(logging.INFO, logger="familybudget"):
        name = storage.store(FileStorage(io.BytesIO(b"new"), filename="r.png"))

    assert name.startswith("r-") and name.endswith(".png")
    assert (storage.directory / "old-receipt.png").exists()
    assert any(record.getMessage() == "Receipt stored" for record in caplog.records)
