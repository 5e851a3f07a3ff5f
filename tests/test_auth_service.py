"""Tests for users, profiles and account deletion."""

import pytest
from sqlmodel import select

from apps.auth.models import User
from apps.auth.services import AuthService
from apps.garage.models import Part, Vehicle
from apps.garage.services import GarageService


@pytest.fixture
def service(session, storage) -> AuthService:
    return AuthService(session)


class TestUserModel:
    def test_display_name_prefers_name(self):
        assert User(email="sam@example.com", name="Sam").display_name == "Sam"

    def test_display_name_falls_back_to_email(self):
        assert User(email="sam@example.com").display_name == "sam"


class TestGetOrCreateUser:
    def test_creates_user(self, service):
        user = service.get_or_create_user({
            "sub": "auth0|new", "email": "new@example.com", "name": "New Driver", "picture": "https://img/p.png",
        })
        assert user.id is not None
        assert user.external_id == "auth0|new"
        assert user.profile_image == "https://img/p.png"
        assert not user.is_premium

    def test_returns_existing_user(self, service, user):
        found = service.get_or_create_user({"sub": "auth0|driver", "email": user.email})
        assert found.id == user.id

    def test_email_required(self, service):
        with pytest.raises(ValueError):
            service.get_or_create_user({"sub": "auth0|anon"})


class TestProfile:
    def test_update_name(self, service, user):
        updated = service.update_profile(user, name="  Sam D  ")
        assert updated.name == "Sam D"

    def test_set_avatar_replaces_previous(self, service, storage, user):
        first = storage.upload("avatars", f"{user.id}/first.jpg", b"x", "image/jpeg")
        second = storage.upload("avatars", f"{user.id}/second.jpg", b"y", "image/jpeg")

        service.update_profile(user, image_url=first)
        updated = service.update_profile(user, image_url=second)

        assert updated.profile_image == second
        assert not (storage.root / "avatars" / str(user.id) / "first.jpg").exists()
        assert (storage.root / "avatars" / str(user.id) / "second.jpg").exists()


class TestDeleteAccount:
    def test_removes_everything(self, service, session, storage, user, vehicle_form, make_part_form):
        garage = GarageService(session)
        image = storage.upload("vehicle-images", f"{user.id}/car.png", b"x", "image/png")
        vehicle = garage.create_vehicle(user, vehicle_form, image_url=image)
        garage.create_part(user.id, make_part_form(vehicle.id))

        service.delete_account(user)

        assert session.exec(select(User)).all() == []
        assert session.exec(select(Vehicle)).all() == []
        assert session.exec(select(Part)).all() == []
        assert not (storage.root / "vehicle-images" / str(user.id) / "car.png").exists()
