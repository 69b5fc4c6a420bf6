"""
Review session state machine.

A ReviewSession is created fresh for every study session and discarded on
logout. It loads everything it needs through the API client, builds the
shuffled queue, and then hands out one QuizTask at a time:

    IDLE -> LOADING -> ACTIVE -> EXHAUSTED
               |
               +-> FAILED (load error; load() may be retried)

All state (queue, stats, current task, exclusions) is owned by the session
and only changed through its methods.
"""

import datetime
import logging
import random
from collections import deque
from enum import Enum
from typing import Any, Deque, Dict, Iterable, List, Optional, Set

from .answers import is_acceptable
from .errors import (
    EmptyAnswerError,
    FetchError,
    ReviewError,
    SessionStateError,
    UnresolvedSubjectError,
)
from .scheduler import build_queue, compute_exclusions, is_due
from .structured import (
    Assignment,
    LoadedData,
    Outcome,
    Progress,
    QuizTask,
    SessionStats,
    StudyMaterial,
    Subject,
)

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    ACTIVE = "active"
    EXHAUSTED = "exhausted"
    FAILED = "failed"


def _parse_subjects(records: Iterable[Dict[str, Any]]) -> Dict[int, Subject]:
    """Parse subject records, skipping any that cannot be understood (e.g. a new subject type)."""
    subjects: Dict[int, Subject] = {}
    for record in records:
        try:
            subject = Subject.from_api(record)
        except (KeyError, ValueError, TypeError) as e:
            logger.warning("Skipping subject %s: %s", record.get("id"), e)
            continue
        subjects[subject.id] = subject
    return subjects


def fetch_session_data(client: Any, now: Optional[datetime.datetime] = None) -> LoadedData:
    """
    Fetch user, assignments, subjects and study materials, in that order.

    Subjects are requested for assignments that are due for review, then for
    any assigned subject the study materials exclude, so the excluded list is
    complete. Subject records that fail to parse are dropped; their tasks are
    skipped as unresolved.
    """
    data = LoadedData()
    logger.info("Loading user info")
    data.user = client.fetch_user()

    logger.info("Loading assignments")
    data.assignments = [Assignment.from_api(record) for record in client.fetch_assignments()]

    due_ids = {a.subject_id for a in data.assignments if is_due(a, now)}
    logger.info("Loading %d subjects", len(due_ids))
    data.subjects = _parse_subjects(client.fetch_subjects(due_ids))

    logger.info("Loading study materials")
    data.study_materials = [StudyMaterial.from_api(record) for record in client.fetch_study_materials()]

    assigned_ids = {a.subject_id for a in data.assignments}
    missing_excluded = (compute_exclusions(data.study_materials) & assigned_ids) - due_ids
    if missing_excluded:
        logger.info("Loading %d excluded subjects", len(missing_excluded))
        data.subjects.update(_parse_subjects(client.fetch_subjects(missing_excluded)))
    return data


class ReviewSession:
    def __init__(self, reporter: Any = None, rng: Optional[random.Random] = None) -> None:
        self.reporter = reporter
        self.rng = rng
        self.state = SessionState.IDLE
        self.data = LoadedData()
        self.exclusions: Set[int] = set()
        self.queue: Deque[QuizTask] = deque()
        self.stats = SessionStats()
        self.current: Optional[QuizTask] = None
        self.started_at: Optional[datetime.datetime] = None
        self._answered = False

    @property
    def username(self) -> Optional[str]:
        return self.data.user.get("username")

    def _reset(self) -> None:
        self.data = LoadedData()
        self.exclusions = set()
        self.queue = deque()
        self.stats = SessionStats()
        self.current = None
        self._answered = False

    def load(self, client: Any, now: Optional[datetime.datetime] = None) -> None:
        """
        Load remote data and start the session.

        On AuthError or FetchError the session moves to FAILED with no data
        kept, and the error propagates to the caller.
        """
        if self.state not in (SessionState.IDLE, SessionState.FAILED):
            raise SessionStateError(f"Cannot load a session that is {self.state.value}")

        self._reset()
        self.state = SessionState.LOADING
        try:
            data = fetch_session_data(client, now)
        except ReviewError:
            self.state = SessionState.FAILED
            raise
        except (KeyError, ValueError, TypeError) as e:
            self.state = SessionState.FAILED
            raise FetchError(f"Malformed API data: {e}") from e

        self.data = data
        self.exclusions = compute_exclusions(data.study_materials)
        self.queue = deque(build_queue(data.assignments, data.subjects, self.exclusions, now=now, rng=self.rng))
        self.started_at = datetime.datetime.now(datetime.UTC)
        self.state = SessionState.ACTIVE
        self.advance()

    def load_tasks(self, tasks: Iterable[QuizTask], subjects: Iterable[Subject]) -> None:
        """Start a session from an already built queue (no API calls)."""
        if self.state not in (SessionState.IDLE, SessionState.FAILED):
            raise SessionStateError(f"Cannot load a session that is {self.state.value}")
        self._reset()
        self.data.subjects = {subject.id: subject for subject in subjects}
        self.queue = deque(tasks)
        self.started_at = datetime.datetime.now(datetime.UTC)
        self.state = SessionState.ACTIVE
        self.advance()

    def subject_for(self, task: QuizTask) -> Subject:
        try:
            return self.data.subjects[task.subject_id]
        except KeyError:
            raise UnresolvedSubjectError(task.subject_id) from None

    @property
    def current_subject(self) -> Optional[Subject]:
        if self.current is None:
            return None
        return self.subject_for(self.current)

    @property
    def answered(self) -> bool:
        return self._answered

    def advance(self) -> Optional[QuizTask]:
        """
        Make the next queued task current.

        Tasks whose subject is missing are dropped. When the queue runs out the
        session becomes EXHAUSTED and there is no current task.
        """
        if self.state is SessionState.EXHAUSTED:
            return None
        if self.state is not SessionState.ACTIVE:
            raise SessionStateError(f"Cannot advance a session that is {self.state.value}")

        while self.queue:
            task = self.queue.popleft()
            try:
                self.subject_for(task)
            except UnresolvedSubjectError:
                logger.debug("Skipping task for unresolved subject %d", task.subject_id)
                continue
            self.current = task
            self._answered = False
            return task

        self.current = None
        self._answered = False
        self.state = SessionState.EXHAUSTED
        logger.info("Review queue exhausted after %d answers", self.stats.total)
        return None

    def _open_task(self) -> QuizTask:
        if self.state is not SessionState.ACTIVE or self.current is None:
            raise SessionStateError("There is no task to answer")
        if self._answered:
            raise SessionStateError("The current task already has a result")
        return self.current

    def _record(self, task: QuizTask, correct: bool) -> Outcome:
        subject = self.subject_for(task)
        self.stats.record(correct)
        self._answered = True
        outcome = Outcome(task=task, correct=correct, acceptable_answers=list(subject.answers_for(task.kind)))
        if self.reporter is not None:
            self.reporter.report(outcome)
        return outcome

    def submit(self, raw_answer: str) -> Outcome:
        """Check a typed answer, record the result and report it."""
        task = self._open_task()
        if not raw_answer.strip():
            raise EmptyAnswerError("Please enter an answer")
        subject = self.subject_for(task)
        correct = is_acceptable(raw_answer, subject.answers_for(task.kind), task.kind)
        return self._record(task, correct)

    def mark(self, correct: bool) -> Outcome:
        """Record a self-graded result for the current task without checking an answer."""
        return self._record(self._open_task(), correct)

    def progress(self) -> Progress:
        return Progress(
            position=self.stats.total + 1,
            total_estimate=self.stats.total + len(self.queue) + 1,
            accuracy=self.stats.accuracy,
        )

    def excluded_subjects(self) -> List[Subject]:
        """Loaded subjects the user excluded from review, by id."""
        return [self.data.subjects[i] for i in sorted(self.exclusions) if i in self.data.subjects]

    def discard(self) -> None:
        """Drop all session data and return to IDLE."""
        self._reset()
        self.started_at = None
        self.state = SessionState.IDLE
