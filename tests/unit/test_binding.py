# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Unit tests for cassette / top tool binding.

Assumptions:
- Bindings are symmetric
- Binding moves the cassette onto the target's press and unmounts any
  other cassette on that press
- Failed validation leaves every tool unchanged
- A store failure on any of the four updates rolls back all of them
"""
import pytest

from pressledger.errors import AlreadyExistsError, NotFoundError, PersistenceError, ValidationError


@pytest.mark.unit
def test_bind_tools_is_symmetric(db_session, make_tool, actor):
    from pressledger.binding import bind_tools
    from pressledger.tools import get_tool

    cassette = make_tool("top-cassette")
    top = make_tool("top", press=3)

    bind_tools(db_session, cassette.id, top.id, actor)

    cassette_after = get_tool(db_session, cassette.id)
    top_after = get_tool(db_session, top.id)
    assert cassette_after.binding == top.id
    assert top_after.binding == cassette.id
    assert cassette_after.press == 3


@pytest.mark.unit
def test_bind_unmounts_other_cassette_on_press(db_session, make_tool, actor):
    from pressledger.binding import bind_tools
    from pressledger.tools import get_tool

    previous_cassette = make_tool("top-cassette", press=3)
    cassette = make_tool("top-cassette", press=5)
    top = make_tool("top", press=3)

    bind_tools(db_session, cassette.id, top.id, actor)

    assert get_tool(db_session, previous_cassette.id).press is None
    assert get_tool(db_session, cassette.id).press == 3


@pytest.mark.unit
def test_bind_to_unmounted_top_unmounts_cassette(db_session, make_tool, actor):
    from pressledger.binding import bind_tools
    from pressledger.tools import get_tool

    other_cassette = make_tool("top-cassette", press=2)
    cassette = make_tool("top-cassette", press=4)
    top = make_tool("top")

    bind_tools(db_session, cassette.id, top.id, actor)

    assert get_tool(db_session, cassette.id).press is None
    assert get_tool(db_session, other_cassette.id).press == 2


@pytest.mark.unit
def test_rebinding_same_pair_fails(db_session, make_tool, actor):
    """Test that repeating a bind is rejected.

    Assumptions:
    - AlreadyExistsError is a ValidationError
    """
    from pressledger.binding import bind_tools

    cassette = make_tool("top-cassette")
    top = make_tool("top")
    bind_tools(db_session, cassette.id, top.id, actor)

    with pytest.raises(AlreadyExistsError):
        bind_tools(db_session, cassette.id, top.id, actor)
    with pytest.raises(ValidationError):
        bind_tools(db_session, cassette.id, top.id, actor)


@pytest.mark.unit
def test_bind_rejects_tool_bound_elsewhere(db_session, make_tool, actor):
    from pressledger.binding import bind_tools
    from pressledger.tools import get_tool

    cassette = make_tool("top-cassette")
    top = make_tool("top")
    other_top = make_tool("top")
    bind_tools(db_session, cassette.id, top.id, actor)

    with pytest.raises(ValidationError) as exc_info:
        bind_tools(db_session, cassette.id, other_top.id, actor)

    assert "already bound" in str(exc_info.value)
    assert get_tool(db_session, other_top.id).binding is None


@pytest.mark.unit
@pytest.mark.parametrize("cassette_position, target_position", [
    ("top", "top"),
    ("bottom", "top"),
    ("top-cassette", "top-cassette"),
    ("top-cassette", "bottom"),
])
def test_bind_rejects_wrong_positions(db_session, make_tool, actor, cassette_position, target_position):
    from pressledger.binding import bind_tools
    from pressledger.tools import get_tool

    first = make_tool(cassette_position)
    second = make_tool(target_position)

    with pytest.raises(ValidationError):
        bind_tools(db_session, first.id, second.id, actor)

    assert get_tool(db_session, first.id).binding is None
    assert get_tool(db_session, second.id).binding is None


@pytest.mark.unit
def test_bind_rejects_self_and_unknown_tools(db_session, make_tool, actor):
    from pressledger.binding import bind_tools

    cassette = make_tool("top-cassette")

    with pytest.raises(ValidationError):
        bind_tools(db_session, cassette.id, cassette.id, actor)
    with pytest.raises(NotFoundError):
        bind_tools(db_session, cassette.id, 999, actor)
    with pytest.raises(ValidationError):
        bind_tools(db_session, cassette.id, 0, actor)


@pytest.mark.unit
def test_unbind_clears_both_sides(db_session, make_tool, actor):
    from pressledger.binding import bind_tools, unbind_tool
    from pressledger.tools import get_tool

    cassette = make_tool("top-cassette")
    top = make_tool("top", press=4)
    bind_tools(db_session, cassette.id, top.id, actor)

    unbind_tool(db_session, top.id, actor)

    assert get_tool(db_session, cassette.id).binding is None
    assert get_tool(db_session, top.id).binding is None
    # Press assignment is kept
    assert get_tool(db_session, cassette.id).press == 4


@pytest.mark.unit
def test_unbind_unbound_tool_is_noop(db_session, make_tool, actor):
    from pressledger.binding import unbind_tool
    from pressledger.tools import get_tool

    tool = make_tool("bottom")

    unbind_tool(db_session, tool.id, actor)

    assert get_tool(db_session, tool.id).binding is None


@pytest.mark.unit
def test_bound_partner_follows_press_change(db_session, make_tool, actor):
    from pressledger.binding import bind_tools
    from pressledger.tools import get_tool, update_tool_press

    cassette = make_tool("top-cassette")
    top = make_tool("top", press=2)
    bind_tools(db_session, cassette.id, top.id, actor)

    update_tool_press(db_session, top.id, 5, actor)

    assert get_tool(db_session, top.id).press == 5
    assert get_tool(db_session, cassette.id).press == 5


@pytest.mark.unit
def test_binding_candidates(db_session, make_tool, actor):
    from pressledger.binding import bind_tools, get_binding_candidates

    top = make_tool("top", width=120, height=60)
    match = make_tool("top-cassette", width=120, height=60)
    make_tool("top-cassette", width=90, height=60)
    taken = make_tool("top-cassette", width=120, height=60)
    bind_tools(db_session, taken.id, make_tool("top", width=120, height=60).id, actor)
    bottom = make_tool("bottom")

    assert [t.id for t in get_binding_candidates(db_session, top.id)] == [match.id]
    assert get_binding_candidates(db_session, bottom.id) == []


@pytest.mark.unit
def test_bind_failure_on_third_update_rolls_back(db_session, make_tool, actor, monkeypatch):
    """Test a store failure while unmounting the press's other cassettes.

    Assumptions:
    - The two binding updates already ran when the third one fails
    - Bindings and presses are all back to their previous values
    """
    from sqlalchemy.exc import OperationalError
    from sqlalchemy.sql.dml import Update
    from pressledger.binding import bind_tools
    from pressledger.tools import get_tool

    previous_cassette = make_tool("top-cassette", press=3)
    cassette = make_tool("top-cassette", press=5)
    top = make_tool("top", press=3)

    real_execute = db_session.execute
    updates = []

    def execute_failing_third_update(statement, *args, **kwargs):
        if isinstance(statement, Update):
            updates.append(statement)
            if len(updates) == 3:
                raise OperationalError("UPDATE tools", {}, Exception("disk I/O error"))
        return real_execute(statement, *args, **kwargs)

    monkeypatch.setattr(db_session, "execute", execute_failing_third_update)

    with pytest.raises(PersistenceError):
        bind_tools(db_session, cassette.id, top.id, actor)

    monkeypatch.undo()

    assert len(updates) == 3
    assert get_tool(db_session, cassette.id).binding is None
    assert get_tool(db_session, top.id).binding is None
    assert get_tool(db_session, cassette.id).press == 5
    assert get_tool(db_session, previous_cassette.id).press == 3
