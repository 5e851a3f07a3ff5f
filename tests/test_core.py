"""Tests for the shared helpers in apps.core."""

import asyncio
import logging
import time
from datetime import timezone
from types import SimpleNamespace

import pytest
from sqlalchemy.exc import OperationalError

from apps.core.base_service import BaseService
from apps.core.errors import BackendTimeout
from apps.core.flash import flash, pop_flashes
from apps.core.logging import setup_logging
from apps.core.templating import category_label, currency
from apps.core.utils import call_with_timeout, utcnow
from database import connect_args_for


class TestFlash:
    def test_messages_shown_once(self):
        request = SimpleNamespace(session={})
        flash(request, "Vehicle added successfully!", "success")
        flash(request, "Image upload failed")

        assert pop_flashes(request) == [
            {"message": "Vehicle added successfully!", "level": "success"},
            {"message": "Image upload failed", "level": "info"},
        ]
        assert pop_flashes(request) == []


class TestCallWithTimeout:
    def test_returns_result(self):
        assert asyncio.run(call_with_timeout(1, lambda a, b: a + b, 2, 3)) == 5

    def test_timeout_message(self):
        with pytest.raises(BackendTimeout, match="Upload timeout after 0.05 seconds"):
            asyncio.run(call_with_timeout(0.05, time.sleep, 0.3, label="upload"))

    def test_is_a_timeout_error(self):
        assert issubclass(BackendTimeout, TimeoutError)


class TestTemplateFilters:
    def test_currency(self):
        assert currency(1234.5) == "$1,234.50"
        assert currency(None) == "$0.00"

    def test_category_label(self):
        assert category_label("audio") == "Audio"
        assert category_label("custom") == "Custom"


class TestLogging:
    def test_setup_logging_adds_one_handler(self):
        logger = setup_logging("DEBUG", module_name="mod_garage.test")
        setup_logging("DEBUG", module_name="mod_garage.test")
        assert len(logger.handlers) == 1
        assert logger.level == logging.DEBUG


class TestTimestamps:
    def test_utcnow_is_timezone_aware(self):
        assert utcnow().tzinfo == timezone.utc

    def test_model_defaults_are_timezone_aware(self):
        from apps.auth.models import User
        from apps.garage.models import Vehicle

        user = User(email="tz@example.com")
        vehicle = Vehicle(user_id=1, name="Civic", make="Honda", model="Civic", year=2008, color="")
        assert user.created_at.tzinfo is not None
        assert vehicle.created_at.tzinfo is not None
        assert vehicle.updated_at.tzinfo is not None


class _LockedSession:
    def __init__(self):
        self.rolled_back = False

    def add(self, obj):
        pass

    def commit(self):
        raise OperationalError("INSERT INTO vehicle", {}, Exception("database is locked"))

    def rollback(self):
        self.rolled_back = True


class TestSaveDeadline:
    def test_blocked_write_becomes_backend_timeout(self):
        session = _LockedSession()
        with pytest.raises(BackendTimeout, match="Insert timeout after 10 seconds"):
            BaseService(session).save(object())
        assert session.rolled_back

    def test_sqlite_busy_timeout(self):
        args = connect_args_for("sqlite:///data/mod_garage.db")
        assert args == {"check_same_thread": False, "timeout": 10.0}

    def test_postgres_statement_timeout(self):
        args = connect_args_for("postgresql://garage@db/garage")
        assert args == {"options": "-c statement_timeout=10000"}
