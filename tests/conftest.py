"""Shared pytest fixtures for the device-interpreter test suite.

Event builders live in ``tests.fixtures.events``; every clock there is
fixed, so no test depends on the wall time.
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from tests.fixtures.events import NOW, make_cycle


@pytest.fixture()
def three_cycle_history():
    """Events of three boot cycles at NOW-2h, NOW-1h and NOW.

    Each cycle holds online, operational, fully-manageable, reboot-pending and
    offline events, except the newest which has only online and operational.
    """
    oldest = make_cycle(
        NOW - timedelta(hours=2),
        ["online", "operational", "fully-manageable", "reboot-pending", "offline"],
        session_id="session-a",
    )
    previous = make_cycle(
        NOW - timedelta(hours=1),
        ["online", "operational", "fully-manageable", "reboot-pending", "offline"],
        session_id="session-b",
    )
    current = make_cycle(NOW, ["online", "operational"], session_id="session-c")
    return {"oldest": oldest, "previous": previous, "current": current}
