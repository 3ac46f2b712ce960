from __future__ import annotations

import threading
from types import SimpleNamespace

import pytest

from medassist.chat.locks import ConversationLocks
from medassist.chat.turns import TurnMode, decide_turn_mode, recent_history


@pytest.mark.parametrize(
    "count, message, images, expected",
    [
        (0, None, None, TurnMode.INITIAL_ASSESSMENT),
        (0, "   ", [], TurnMode.INITIAL_ASSESSMENT),
        (0, "I have a headache", None, TurnMode.ORDINARY_TURN),
        (0, "", ["data:image/png;base64,AA=="], TurnMode.INITIAL_ASSESSMENT),
        (3, "Any update?", None, TurnMode.ORDINARY_TURN),
        (3, "", ["data:image/png;base64,AA=="], TurnMode.ORDINARY_TURN),
        (1, "", None, TurnMode.REJECTED),
        (5, None, [], TurnMode.REJECTED),
    ],
)
def test_decide_turn_mode(count, message, images, expected):
    assert decide_turn_mode(count, message, images) == expected


def test_recent_history_keeps_last_window_oldest_first():
    messages = [
        SimpleNamespace(role="user" if i % 2 else "assistant", content=f"msg-{i:02d}", images=None)
        for i in range(1, 16)
    ]
    history = recent_history(messages, window=10)
    assert [entry.content for entry in history] == [f"msg-{i:02d}" for i in range(6, 16)]
    assert history[0].images == []


def test_recent_history_zero_window():
    assert recent_history([SimpleNamespace(role="user", content="x", images=None)], window=0) == []


def test_conversation_locks_serialize_same_id_and_clean_up():
    locks = ConversationLocks()
    inside = []
    overlap = []

    def worker():
        with locks.hold("conv-1"):
            inside.append(1)
            if len(inside) > 1:
                overlap.append(True)
            threading.Event().wait(0.01)
            inside.pop()

    threads = [threading.Thread(target=worker) for _ in range(5)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert overlap == []
    assert len(locks) == 0


def test_conversation_locks_do_not_block_other_ids():
    locks = ConversationLocks()
    with locks.hold("conv-1"):
        acquired = threading.Event()

        def other():
            with locks.hold("conv-2"):
                acquired.set()

        t = threading.Thread(target=other)
        t.start()
        assert acquired.wait(1.0)
        t.join()
