# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Unit tests for shared input validation and the error taxonomy.
"""
import pytest

from pressledger.errors import (
    AlreadyExistsError, CompensationError, NotFoundError, PersistenceError, ValidationError
)


@pytest.mark.unit
@pytest.mark.parametrize("value", [0, -1, "3", 2.0, True, None])
def test_validate_id_rejects(value):
    from pressledger.validation import validate_id

    with pytest.raises(ValidationError):
        validate_id(value, "tool")


@pytest.mark.unit
def test_validate_id_accepts_positive_int():
    from pressledger.validation import validate_id

    assert validate_id(5, "tool") == 5


@pytest.mark.unit
@pytest.mark.parametrize("value", [0, 2, 3, 4, 5])
def test_validate_press_number_accepts_known_presses(value):
    from pressledger.validation import validate_press_number

    assert validate_press_number(value) == value


@pytest.mark.unit
@pytest.mark.parametrize("value", [1, 6, -2, "3", None])
def test_validate_press_number_rejects(value):
    from pressledger.validation import validate_press_number

    with pytest.raises(ValidationError):
        validate_press_number(value)


@pytest.mark.unit
def test_validate_position():
    from pressledger.database.schema import Position
    from pressledger.validation import validate_position

    assert validate_position("top-cassette") == Position.TOP_CASSETTE
    assert validate_position(Position.BOTTOM) == Position.BOTTOM
    with pytest.raises(ValidationError):
        validate_position("cassette")
    with pytest.raises(ValidationError):
        validate_position(None)


@pytest.mark.unit
def test_validate_total_cycles():
    from pressledger.validation import validate_total_cycles

    assert validate_total_cycles(0) == 0
    with pytest.raises(ValidationError):
        validate_total_cycles(-1)
    with pytest.raises(ValidationError):
        validate_total_cycles(1.5)


@pytest.mark.unit
def test_validate_actor():
    from pressledger.models import Actor
    from pressledger.validation import validate_actor

    validate_actor(Actor(id=3, name="Shift lead"))
    with pytest.raises(ValidationError):
        validate_actor(None)
    with pytest.raises(ValidationError):
        validate_actor(Actor(id=0, name="Nobody"))


@pytest.mark.unit
def test_position_rank():
    from pressledger.database.schema import Position

    assert Position.TOP.rank < Position.TOP_CASSETTE.rank < Position.BOTTOM.rank


@pytest.mark.unit
def test_error_messages_carry_context():
    cause = RuntimeError("disk full")

    not_found = NotFoundError("tool", 4)
    assert str(not_found) == "tool with ID 4 not found"
    assert not_found.context == {"entity": "tool", "id": 4}

    persistence = PersistenceError("insert", "press_cycles", cause)
    assert str(persistence) == "failed to insert press_cycles: disk full"
    assert persistence.cause is cause

    compensation = CompensationError(persistence, RuntimeError("connection lost"))
    assert "rollback failed: connection lost" in str(compensation)

    assert issubclass(AlreadyExistsError, ValidationError)


@pytest.mark.unit
def test_transaction_wraps_store_errors(db_session):
    """Test that store failures become PersistenceError and roll back."""
    from sqlalchemy.exc import OperationalError
    from pressledger.database.session import transaction

    with pytest.raises(PersistenceError) as exc_info:
        with transaction(db_session, "update", "tools"):
            raise OperationalError("UPDATE tools", {}, Exception("database is locked"))

    assert exc_info.value.action == "update"
    assert exc_info.value.entity == "tools"
    assert isinstance(exc_info.value.__cause__, OperationalError)


@pytest.mark.unit
def test_transaction_passes_domain_errors_through(db_session, make_tool):
    from pressledger.database.schema import Tool
    from pressledger.database.session import transaction

    tool = make_tool("top", code="G01")

    with pytest.raises(ValidationError):
        with transaction(db_session, "update", "tools"):
            tool.code = "G99"
            db_session.flush()
            raise ValidationError("nope")

    assert db_session.get(Tool, tool.id).code == "G01"
