"""Tests for the family and threshold pages."""

from __future__ import annotations

from datetime import date

from sqlmodel import select

from familybudget.extensions import session_scope
from familybudget.models import Family, Threshold, User
from familybudget.models.user import ROLE_ADMIN, ROLE_MEMBER

from tests.conftest import login


def _household(factory):
    admin = factory.user("admin@example.com", "Admin")
    family = factory.family("Smith", 1000.0, admin=admin)
    member = factory.user("member@example.com", "Member", family=family)
    return admin, family, member


def test_home_without_family_offers_create_and_join(client, factory):
    factory.user()
    login(client, "parent@example.com")

    body = client.get("/family/home").get_data(as_text=True)

    assert "You are not part of a family yet" in body
    assert "/family/create" in body


def test_home_lists_members_with_current_spend(client, factory):
    admin, family, member = _household(factory)
    groceries = factory.category("Groceries")
    factory.threshold(family, groceries, 200.0)
    factory.expense(member, 35.5, date.today(), category=groceries)
    login(client, "admin@example.com")

    body = client.get("/family/home").get_data(as_text=True)

    assert "Smith" in body
    assert "1000.00" in body
    assert "member@example.com" in body
    assert "35.50" in body
    assert "Groceries" in body
    assert "200.00" in body
    assert "Make admin" in body
    assert "You are the only admin." in body


def test_create_family(client, factory):
    factory.user()
    login(client, "parent@example.com")

    response = client.post(
        "/family/create",
        data={"name": "Garcia", "monthly_target_budget": "2500"},
        follow_redirects=True,
    )

    assert response.status_code == 200
    assert "Family created successfully." in response.get_data(as_text=True)
    with session_scope() as session:
        family = session.exec(select(Family)).one()
        user = session.exec(select(User)).one()
    assert family.monthly_target_budget == 2500.0
    assert user.role == ROLE_ADMIN


def test_create_family_validation(client, factory):
    factory.user()
    login(client, "parent@example.com")

    response = client.post(
        "/family/create", data={"name": "G4rcia", "monthly_target_budget": "abc"}
    )

    assert response.status_code == 400
    assert "Enter a valid number for the budget." in response.get_data(as_text=True)


def test_join_family(client, factory):
    _, family, _ = _household(factory)
    factory.user("new@example.com", "Newbie")
    login(client, "new@example.com")

    assert "Smith" in client.get("/family/join").get_data(as_text=True)
    response = client.post(f"/family/join/{family.id}", follow_redirects=True)

    assert "You joined Smith." in response.get_data(as_text=True)
    with session_scope() as session:
        newbie = session.exec(select(User).where(User.email == "new@example.com")).one()
    assert newbie.family_id == family.id
    assert newbie.role == ROLE_MEMBER


def test_add_user_by_email(client, factory):
    _household(factory)
    factory.user("kid@example.com", "Kid")
    login(client, "admin@example.com")

    response = client.post("/family/add-user", data={"email": "kid@example.com"}, follow_redirects=True)
    assert "Kid was added to your family." in response.get_data(as_text=True)

    response = client.post("/family/add-user", data={"email": "ghost@example.com"})
    assert response.status_code == 400
    assert "User with this email does not exist." in response.get_data(as_text=True)


def test_only_admin_cannot_leave(client, factory):
    _household(factory)
    login(client, "admin@example.com")

    response = client.post("/family/leave", follow_redirects=True)

    assert "Can&#39;t leave family if you are the only admin." in response.get_data(as_text=True)


def test_member_leaves(client, factory):
    _, _, member = _household(factory)
    login(client, "member@example.com")

    response = client.post("/family/leave")

    assert response.status_code == 302
    with session_scope() as session:
        assert session.get(User, member.id).family_id is None


def test_kick_and_role_change(client, factory):
    _, _, member = _household(factory)
    login(client, "admin@example.com")

    response = client.post(f"/family/role-change/{member.id}", data={"role": "admin"}, follow_redirects=True)
    assert "Member is now admin." in response.get_data(as_text=True)

    response = client.post(f"/family/kick/{member.id}", follow_redirects=True)
    assert "Member was removed from the family." in response.get_data(as_text=True)
    with session_scope() as session:
        assert session.get(User, member.id).family_id is None


def test_member_cannot_kick(client, factory):
    admin, _, _ = _household(factory)
    login(client, "member@example.com")

    response = client.post(f"/family/kick/{admin.id}", follow_redirects=True)

    assert "Only admins can kick users from the family." in response.get_data(as_text=True)


def test_edit_family_is_admin_only(client, factory):
    _household(factory)
    login(client, "member@example.com")
    assert client.get("/family/edit").status_code == 403
    client.post("/logout")

    login(client, "admin@example.com")
    response = client.post(
        "/family/edit",
        data={"name": "Smith Jones", "monthly_target_budget": "1500"},
    )
    assert response.status_code == 302
    with session_scope() as session:
        family = session.exec(select(Family)).one()
    assert family.name == "Smith Jones"
    assert family.monthly_target_budget == 1500.0


def test_delete_family_as_last_member(client, factory):
    admin = factory.user("admin@example.com", "Admin")
    factory.family("Solo", 100.0, admin=admin)
    login(client, "admin@example.com")

    response = client.post("/family/delete")

    assert response.status_code == 302
    with session_scope() as session:
        assert session.exec(select(Family)).all() == []


# =============================================================================
# Thresholds
# =============================================================================


def test_add_threshold_requires_family(client, factory):
    factory.user()
    login(client, "parent@example.com")

    response = client.get("/thresholds/add")

    assert response.status_code == 302
    assert response.headers["Location"].endswith("/family/home")


def test_member_adds_threshold(client, factory):
    _household(factory)
    fuel = factory.category("Fuel")
    login(client, "member@example.com")

    response = client.post(
        "/thresholds/add", data={"category_id": str(fuel.id), "amount": "150"}, follow_redirects=True
    )

    assert "Threshold added successfully." in response.get_data(as_text=True)
    with session_scope() as session:
        assert session.exec(select(Threshold)).one().amount == 150.0


def test_threshold_over_budget_is_rejected(client, factory):
    _household(factory)
    fuel = factory.category("Fuel")
    login(client, "admin@example.com")

    response = client.post("/thresholds/add", data={"category_id": str(fuel.id), "amount": "1000.01"})

    assert response.status_code == 400
    assert "Invalid threshold value, the total exceeds the monthly budget!" in response.get_data(as_text=True)


def test_threshold_edit_and_delete_are_admin_only(client, factory):
    _, family, _ = _household(factory)
    threshold = factory.threshold(family, factory.category("Fuel"), 100.0)

    login(client, "member@example.com")
    assert client.get(f"/thresholds/edit/{threshold.id}").status_code == 403
    client.post("/logout")

    login(client, "admin@example.com")
    response = client.post(f"/thresholds/edit/{threshold.id}", data={"amount": "250"}, follow_redirects=True)
    assert "Threshold updated successfully." in response.get_data(as_text=True)
    with session_scope() as session:
        assert session.get(Threshold, threshold.id).amount == 250.0

    response = client.post(f"/thresholds/delete/{threshold.id}", follow_redirects=True)
    assert "Threshold deleted." in response.get_data(as_text=True)
    with session_scope() as session:
        assert session.get(Threshold, threshold.id) is None


def test_threshold_of_another_family_is_not_found(client, factory):
    _household(factory)
    other_admin = factory.user("other@example.com", "Other")
    other_family = factory.family("Jones", admin=other_admin)
    foreign = factory.threshold(other_family, factory.category("Fuel"), 10.0)
    login(client, "admin@example.com")

    assert client.get(f"/thresholds/edit/{foreign.id}").status_code == 404
