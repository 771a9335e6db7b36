import asyncio

import pytest

from calcbot_engine import (
    CalcBotEngine, Stage, MSG_WELCOME, MSG_GREETING, MSG_CHOOSE_OPERATOR,
)
from calcbot_session import ChatSession, typing_delay_ms


def run_session(lines, **kwargs):
    """Open a session, submit each line, wait for all replies."""
    replies = []
    events = []

    async def scenario():
        session = ChatSession(replies.append, typing=events.append, **kwargs)
        session.open()
        for line in lines:
            session.submit(line)
        await session.close()
        return session

    session = asyncio.run(scenario())
    return session, replies, events


@pytest.mark.parametrize("text, ms", [
    ("", 1200),
    ("abc", 1260),
    ("x" * 50, 2200),
    ("x" * 500, 2200),
])
def test_typing_delay(text, ms):
    assert typing_delay_ms(text) == ms

def test_open_sends_welcome():
    _, replies, _ = run_session([], delay_scale=0)
    assert replies == [MSG_WELCOME]

def test_blank_input_is_dropped():
    engine = CalcBotEngine()
    session, replies, _ = run_session(["", "   ", "\n"], engine=engine, delay_scale=0)
    assert replies == [MSG_WELCOME]
    assert engine.state(session.conversation_id).stage is Stage.AWAITING_START

def test_replies_keep_submission_order():
    # A short reply submitted after a long one must not overtake it
    _, replies, _ = run_session(
        ["/start", "/name: Vasya", "/number: 7, 9", "+"], delay_scale=0.001,
    )
    assert replies[0] == MSG_WELCOME
    assert replies[1] == MSG_GREETING
    assert replies[2].startswith("Привет Vasya")
    assert replies[3] == MSG_CHOOSE_OPERATOR
    assert replies[4] == "Результат: 16"

def test_state_changes_before_delivery():
    replies = []

    async def scenario():
        engine = CalcBotEngine()
        session = ChatSession(replies.append, engine=engine, delay_scale=0.01)
        session.submit("/start")
        stage = engine.state(session.conversation_id).stage
        delivered = list(replies)
        await session.drain()
        return stage, delivered

    stage, delivered = asyncio.run(scenario())
    assert stage is Stage.ASKED_NAME
    assert delivered == []
    assert replies == [MSG_GREETING]

def test_typing_indicator_wraps_each_reply():
    _, replies, events = run_session(["/start"], delay_scale=0)
    assert len(replies) == 2
    assert events.count(True) == 2
    assert events.count(False) == 2
    assert events[0] is True
    assert events[-1] is False

def test_submit_returns_task_or_none():
    async def scenario():
        session = ChatSession(lambda text: None, delay_scale=0)
        blank = session.submit("  ")
        task = session.submit("/start")
        await session.drain()
        return blank, task

    blank, task = asyncio.run(scenario())
    assert blank is None
    assert task.done()
