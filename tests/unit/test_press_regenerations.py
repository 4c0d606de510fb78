# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Unit tests for press regenerations.

Assumptions:
- One regeneration per press can be in progress at a time
- stop completes the open regeneration; it can't end before it started
- History and "last" are per press, newest first
"""
import pytest
from datetime import datetime, timedelta, timezone

from pressledger.errors import NotFoundError, ValidationError


START = datetime(2025, 4, 1, 6, 0)


@pytest.mark.unit
def test_start_and_stop_press_regeneration(db_session, actor):
    from pressledger.press_regenerations import (
        get_last_press_regeneration, start_press_regeneration, stop_press_regeneration
    )

    started = start_press_regeneration(db_session, 3, "new ram guide", actor, started_at=START)
    assert started.in_progress is True
    assert started.reason == "new ram guide"
    assert started.performed_by == actor.id

    stopped = stop_press_regeneration(db_session, 3, actor, completed_at=START + timedelta(days=2))

    assert stopped.id == started.id
    assert stopped.in_progress is False
    last = get_last_press_regeneration(db_session, 3)
    assert last.id == started.id
    assert last.completed_at == datetime(2025, 4, 3, 6, 0)


@pytest.mark.unit
def test_second_start_while_in_progress_rejected(db_session, actor):
    from pressledger.press_regenerations import (
        get_press_regeneration_history, start_press_regeneration
    )

    start_press_regeneration(db_session, 4, None, actor)

    with pytest.raises(ValidationError):
        start_press_regeneration(db_session, 4, None, actor)

    assert len(get_press_regeneration_history(db_session, 4)) == 1


@pytest.mark.unit
def test_other_presses_are_independent(db_session, actor):
    from pressledger.press_regenerations import start_press_regeneration

    start_press_regeneration(db_session, 2, None, actor)
    other = start_press_regeneration(db_session, 5, None, actor)

    assert other.press_number == 5


@pytest.mark.unit
def test_stop_without_open_regeneration_rejected(db_session, actor):
    from pressledger.press_regenerations import stop_press_regeneration

    with pytest.raises(ValidationError):
        stop_press_regeneration(db_session, 3, actor)


@pytest.mark.unit
def test_stop_before_start_rejected(db_session, actor):
    from pressledger.press_regenerations import (
        get_last_press_regeneration, start_press_regeneration, stop_press_regeneration
    )

    start_press_regeneration(db_session, 3, None, actor, started_at=START)

    with pytest.raises(ValidationError):
        stop_press_regeneration(db_session, 3, actor, completed_at=START - timedelta(hours=1))

    assert get_last_press_regeneration(db_session, 3).in_progress is True


@pytest.mark.unit
def test_history_newest_first_and_last(db_session, actor):
    from pressledger.press_regenerations import (
        get_last_press_regeneration, get_press_regeneration_history,
        start_press_regeneration, stop_press_regeneration
    )

    created = []
    for month in (1, 2, 3):
        started = datetime(2025, month, 1)
        created.append(start_press_regeneration(db_session, 0, None, actor, started_at=started).id)
        stop_press_regeneration(db_session, 0, actor, completed_at=started + timedelta(days=1))

    assert [r.id for r in get_press_regeneration_history(db_session, 0)] == list(reversed(created))
    assert get_last_press_regeneration(db_session, 0).id == created[-1]
    assert get_press_regeneration_history(db_session, 2) == []


@pytest.mark.unit
def test_last_press_regeneration_not_found(db_session):
    from pressledger.press_regenerations import get_last_press_regeneration

    with pytest.raises(NotFoundError):
        get_last_press_regeneration(db_session, 5)


@pytest.mark.unit
def test_invalid_press_rejected(db_session, actor):
    from pressledger.press_regenerations import (
        get_press_regeneration_history, start_press_regeneration
    )

    with pytest.raises(ValidationError):
        start_press_regeneration(db_session, 1, None, actor)
    with pytest.raises(ValidationError):
        get_press_regeneration_history(db_session, 9)


@pytest.mark.unit
def test_aware_start_is_stored_as_utc(db_session, actor):
    from pressledger.press_regenerations import start_press_regeneration

    started = start_press_regeneration(
        db_session, 3, None, actor,
        started_at=datetime(2025, 4, 1, 8, 0, tzinfo=timezone(timedelta(hours=2))),
    )

    assert started.started_at == datetime(2025, 4, 1, 6, 0)


@pytest.mark.unit
def test_update_and_delete_press_regeneration(db_session, actor):
    from pressledger.press_regenerations import (
        delete_press_regeneration, get_press_regeneration, get_press_regeneration_history,
        start_press_regeneration, update_press_regeneration
    )

    regeneration_id = start_press_regeneration(db_session, 2, "typo", actor, started_at=START).id

    update_press_regeneration(
        db_session, regeneration_id, actor,
        completed_at=START + timedelta(hours=8), reason="bearings",
    )
    corrected = get_press_regeneration(db_session, regeneration_id)
    assert corrected.completed_at == START + timedelta(hours=8)
    assert corrected.reason == "bearings"

    with pytest.raises(ValidationError):
        update_press_regeneration(db_session, regeneration_id, actor, started_at=START + timedelta(days=1))

    delete_press_regeneration(db_session, regeneration_id, actor)
    assert get_press_regeneration_history(db_session, 2) == []
    with pytest.raises(NotFoundError):
        get_press_regeneration(db_session, regeneration_id)
