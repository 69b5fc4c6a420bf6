import datetime
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class TaskKind(str, Enum):
    MEANING = "meaning"
    READING = "reading"


class SubjectType(str, Enum):
    RADICAL = "radical"
    KANJI = "kanji"
    VOCABULARY = "vocabulary"
    KANA_VOCABULARY = "kana_vocabulary"


def _parse_timestamp(value: Optional[str]) -> Optional[datetime.datetime]:
    """Parse an ISO 8601 API timestamp ("2024-01-01T00:00:00.000000Z")."""
    if not value:
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.UTC)
    return parsed


def _accepted(entries: List[Dict[str, Any]], key: str) -> Tuple[str, ...]:
    # Entries without the flag are treated as accepted.
    return tuple(
        entry[key] for entry in entries
        if entry.get(key) and entry.get("accepted_answer", True)
    )


@dataclass(frozen=True)
class Subject:
    id: int
    subject_type: SubjectType
    characters: Optional[str]
    slug: str
    meanings: Tuple[str, ...] = ()
    readings: Tuple[str, ...] = ()

    @property
    def display(self) -> str:
        """Characters when the subject has them, otherwise the romanized slug."""
        return self.characters or self.slug

    def answers_for(self, kind: TaskKind) -> Tuple[str, ...]:
        return self.meanings if kind is TaskKind.MEANING else self.readings

    @classmethod
    def from_api(cls, record: Dict[str, Any]) -> "Subject":
        """Build a Subject from a /subjects resource."""
        data = record.get("data", {})
        meanings = list(_accepted(data.get("meanings") or [], "meaning"))
        meanings.extend(
            aux["meaning"] for aux in data.get("auxiliary_meanings") or []
            if aux.get("type") == "whitelist" and aux.get("meaning")
        )
        return cls(
            id=record["id"],
            subject_type=SubjectType(record["object"]),
            characters=data.get("characters"),
            slug=data.get("slug", ""),
            meanings=tuple(meanings),
            readings=_accepted(data.get("readings") or [], "reading"),
        )


@dataclass(frozen=True)
class Assignment:
    id: int
    subject_id: int
    srs_stage: int
    available_at: Optional[datetime.datetime]

    @classmethod
    def from_api(cls, record: Dict[str, Any]) -> "Assignment":
        """Build an Assignment from an /assignments resource."""
        data = record.get("data", {})
        return cls(
            id=record["id"],
            subject_id=data["subject_id"],
            srs_stage=data.get("srs_stage") or 0,
            available_at=_parse_timestamp(data.get("available_at")),
        )


@dataclass(frozen=True)
class StudyMaterial:
    subject_id: int
    meaning_note: Optional[str] = None

    @classmethod
    def from_api(cls, record: Dict[str, Any]) -> "StudyMaterial":
        data = record.get("data", {})
        return cls(subject_id=data["subject_id"], meaning_note=data.get("meaning_note"))


@dataclass(frozen=True)
class QuizTask:
    """One question: the meaning or the reading of an assignment's subject."""
    assignment: Assignment
    kind: TaskKind

    @property
    def subject_id(self) -> int:
        return self.assignment.subject_id


@dataclass(frozen=True)
class Outcome:
    task: QuizTask
    correct: bool
    acceptable_answers: List[str]

    @property
    def meaning_incorrect(self) -> int:
        return int(self.task.kind is TaskKind.MEANING and not self.correct)

    @property
    def reading_incorrect(self) -> int:
        return int(self.task.kind is TaskKind.READING and not self.correct)


def percent(part: int, whole: int) -> int:
    """Whole percentage rounded half up (1 of 8 -> 13), 100 when whole is 0."""
    if whole == 0:
        return 100
    return (part * 200 + whole) // (2 * whole)


@dataclass
class SessionStats:
    total: int = 0
    correct: int = 0
    incorrect: int = 0

    def record(self, correct: bool) -> None:
        self.total += 1
        if correct:
            self.correct += 1
        else:
            self.incorrect += 1

    @property
    def accuracy(self) -> int:
        """Rounded percentage of correct answers, 100 before the first answer."""
        return percent(self.correct, self.total)


@dataclass(frozen=True)
class Progress:
    position: int
    total_estimate: int
    accuracy: int


@dataclass
class LoadedData:
    """Snapshot of everything fetched for one session."""
    user: Dict[str, Any] = field(default_factory=dict)
    assignments: List[Assignment] = field(default_factory=list)
    subjects: Dict[int, Subject] = field(default_factory=dict)
    study_materials: List[StudyMaterial] = field(default_factory=list)
