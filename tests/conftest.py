from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine

from wk_review import db

PAST = "2020-01-01T00:00:00.000000Z"
FUTURE = "2999-01-01T00:00:00.000000Z"


def subject_record(subject_id: int, obj: str, characters: Optional[str], meanings: List[str],
                   readings: Optional[List[str]] = None, slug: str = "") -> Dict[str, Any]:
    return {
        "id": subject_id,
        "object": obj,
        "data": {
            "characters": characters,
            "slug": slug or (characters or ""),
            "meanings": [{"meaning": m, "primary": i == 0, "accepted_answer": True} for i, m in enumerate(meanings)],
            "readings": [{"reading": r, "primary": i == 0, "accepted_answer": True} for i, r in enumerate(readings or [])],
        },
    }


def assignment_record(assignment_id: int, subject_id: int, srs_stage: int = 1,
                      available_at: Optional[str] = PAST) -> Dict[str, Any]:
    return {
        "id": assignment_id,
        "object": "assignment",
        "data": {"subject_id": subject_id, "srs_stage": srs_stage, "available_at": available_at},
    }


def study_material_record(subject_id: int, meaning_note: Optional[str]) -> Dict[str, Any]:
    return {"object": "study_material", "data": {"subject_id": subject_id, "meaning_note": meaning_note}}


SUBJECTS = {
    1: subject_record(1, "radical", None, ["Ground"], slug="ground"),
    2: subject_record(2, "kanji", "大", ["Big", "Large"], ["たい", "おお"]),
    3: subject_record(3, "vocabulary", "今日", ["Today"], ["きょう"]),
    4: subject_record(4, "vocabulary", "犬", ["Dog"], ["いぬ"]),
}


def make_client(assignments: List[Dict[str, Any]], study_materials: Optional[List[Dict[str, Any]]] = None,
                subjects: Optional[Dict[int, Dict[str, Any]]] = None) -> MagicMock:
    """A MagicMock standing in for WaniKaniClient, serving fixed records."""
    subjects = SUBJECTS if subjects is None else subjects
    client = MagicMock()
    client.fetch_user.return_value = {"username": "tester", "level": 3}
    client.fetch_assignments.return_value = assignments
    client.fetch_subjects.side_effect = lambda ids: [subjects[i] for i in ids if i in subjects]
    client.fetch_study_materials.return_value = study_materials or []
    return client


@pytest.fixture
def temp_db(tmp_path, monkeypatch):
    """Use a temporary SQLite DB, and rebind engine/session to it."""
    test_db = str(tmp_path / "test.db")
    monkeypatch.setenv("WK_REVIEW_DB", test_db)
    monkeypatch.delenv("WANIKANI_API_TOKEN", raising=False)
    db.engine = create_engine(f"sqlite:///{test_db}")
    db.SessionLocal = db.sessionmaker(bind=db.engine, expire_on_commit=False)
    db.init_db()
    yield
