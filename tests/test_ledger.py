"""Tests for geodebate/ledger.py and geodebate/feed.py."""

from geodebate.feed import ChatFeed
from geodebate.ledger import ConversationLedger
from geodebate.models import Agent


def test_append_and_full_transcript():
    ledger = ConversationLedger()
    ledger.append("User", None, "Where is the copper?")
    ledger.append("Geophysics Expert", "geophysical", "Under the magnetic high.")

    assert ledger.full_transcript() == (
        "[User]:\nWhere is the copper?\n\n"
        "[Geophysics Expert (ID: geophysical)]:\nUnder the magnetic high."
    )


def test_full_transcript_empty():
    assert ConversationLedger().full_transcript() == ""


def test_full_transcript_is_restartable():
    ledger = ConversationLedger()
    ledger.append("User", None, "one")
    assert ledger.full_transcript() == ledger.full_transcript()
    assert list(ledger.render_turns()) == list(ledger.render_turns())


def test_non_text_content_is_serialized():
    ledger = ConversationLedger()
    turn = ledger.append("Host", "host", {"b": 2, "a": "铜"})
    assert turn.content == '{"a": "铜", "b": 2}'


def test_incremental_returns_all_then_nothing():
    ledger = ConversationLedger()
    for i in range(3):
        ledger.append("User", None, f"turn {i}")

    first = ledger.incremental_transcript()
    assert "turn 0" in first and "turn 2" in first
    assert ledger.checkpoint == 3
    assert ledger.incremental_transcript() == ""
    assert ledger.checkpoint == 3


def test_incremental_returns_only_new_turns():
    ledger = ConversationLedger()
    ledger.append("User", None, "old")
    ledger.incremental_transcript()
    ledger.append("Host", "host", "new")

    text = ledger.incremental_transcript()
    assert text == "[Host (ID: host)]:\nnew"


def test_incremental_force_full():
    ledger = ConversationLedger()
    ledger.append("User", None, "old")
    ledger.incremental_transcript()

    assert ledger.incremental_transcript(force_full=True) == "[User]:\nold"
    assert ledger.checkpoint == 1


def test_clear_resets_everything():
    ledger = ConversationLedger()
    ledger.append("User", None, "x")
    ledger.incremental_transcript()
    ledger.last_result = {"summary": "s"}

    ledger.clear()

    assert len(ledger) == 0
    assert ledger.checkpoint == 0
    assert ledger.last_result is None
    assert ledger.incremental_transcript(force_full=True) == ""


def test_feed_post_records_user_and_agent_turns(sink):
    ledger = ConversationLedger()
    feed = ChatFeed(ledger, sink)
    agent = Agent(key="host", name="Host", chat_id="c", is_host=True)

    feed.post("question")
    feed.post("answer", agent, [{"doc_name": "a.pdf"}])

    assert [(t.role, t.agent_key) for t in ledger.turns] == [("User", None), ("Host", "host")]
    assert sink.turns == [("user", None, "question"), ("agent", "host", "answer")]
    assert sink.references[-1] == [{"doc_name": "a.pdf"}]


def test_feed_notice_is_display_only(sink):
    ledger = ConversationLedger()
    feed = ChatFeed(ledger, sink)

    feed.notice("System is busy")

    assert len(ledger) == 0
    assert sink.notices() == ["System is busy"]
