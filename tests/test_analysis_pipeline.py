import json
from datetime import datetime

import pytest
from sqlalchemy.exc import OperationalError

import analysis
import models
from errors import NotFoundError, PersistenceError

from test_evaluate_parse import COMPLETE, MODEL_PAYLOAD


def test_complete_analysis_is_returned_from_cache(db, user, make_entry, fake_llm):
    entry = make_entry(analysis=COMPLETE)
    updated_at = entry.updated_at

    result = analysis.analyze_entry(db, user, entry.id, fake_llm)

    assert result == COMPLETE
    assert fake_llm.calls == []
    db.refresh(entry)
    assert entry.updated_at == updated_at


def test_absent_analysis_falls_back_when_ai_fails(db, user, make_entry, fake_llm):
    entry = make_entry()
    start = models.utcnow()

    result = analysis.analyze_entry(db, user, entry.id, fake_llm)

    assert len(fake_llm.calls) == 1
    assert analysis.evaluate(result) is analysis.AnalysisState.COMPLETE
    assert datetime.fromisoformat(result["analyzedAt"]) >= start
    assert result["sentiment"]["label"] == "positive"
    assert result["wellnessScore"] == 75

    db.refresh(entry)
    assert entry.analysis == result
    assert entry.updated_at >= start


def test_second_call_does_not_recompute(db, user, make_entry, fake_llm):
    entry = make_entry()
    first = analysis.analyze_entry(db, user, entry.id, fake_llm)
    second = analysis.analyze_entry(db, user, entry.id, fake_llm)

    assert first == second
    assert len(fake_llm.calls) == 1


def test_stale_analysis_is_regenerated(db, user, make_entry, fake_llm):
    entry = make_entry(analysis={"analyzedAt": "2026-01-01T00:00:00", "emotions": []})
    fake_llm.analysis_text = json.dumps(MODEL_PAYLOAD)

    result = analysis.analyze_entry(db, user, entry.id, fake_llm)

    assert fake_llm.calls == [("analyze", entry.title, entry.content, entry.mood)]
    assert result["wellnessScore"] == 58
    assert result["sentiment"]["label"] == "mixed"
    assert result["analyzedAt"] != "2026-01-01T00:00:00"


def test_fenced_ai_response_is_used(db, user, make_entry, fake_llm):
    entry = make_entry()
    fake_llm.analysis_text = "```json\n" + json.dumps(MODEL_PAYLOAD) + "\n```"

    result = analysis.analyze_entry(db, user, entry.id, fake_llm)

    assert result["keywords"] == ["exam", "family"]
    assert result["insights"]["concerns"] == "c"


def test_unparseable_ai_response_uses_heuristic(db, user, make_entry, fake_llm):
    entry = make_entry(title="Test", content="I feel happy and grateful today", mood="happy")
    fake_llm.analysis_text = "Overall a pleasant day with some reflection."

    result = analysis.analyze_entry(db, user, entry.id, fake_llm)

    expected = analysis.heuristic("Test", "I feel happy and grateful today", "happy")
    assert result["keywords"] == expected.keywords
    assert result["wellnessScore"] == 75


def test_entry_of_another_user_is_not_found(db, user, make_entry, fake_llm):
    other = models.User(name="Eve", email="eve@example.com", hashed_password="x")
    db.add(other)
    db.commit()
    entry = make_entry(owner=other)

    with pytest.raises(NotFoundError):
        analysis.analyze_entry(db, user, entry.id, fake_llm)
    assert fake_llm.calls == []


def test_persist_failure_is_reported(db, user, make_entry, fake_llm, monkeypatch):
    entry = make_entry()

    def broken_commit():
        raise OperationalError("UPDATE journal_entries", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db, "commit", broken_commit)

    with pytest.raises(PersistenceError):
        analysis.analyze_entry(db, user, entry.id, fake_llm)
