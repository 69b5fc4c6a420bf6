import datetime
import logging
import random
from typing import Iterable, List, Mapping, MutableSequence, Optional, Set, TypeVar

from .structured import Assignment, QuizTask, StudyMaterial, Subject, SubjectType, TaskKind

logger = logging.getLogger(__name__)

EXCLUDE_MARKER = "#tsurukameExclude"

T = TypeVar("T")


def compute_exclusions(study_materials: Iterable[StudyMaterial], marker: str = EXCLUDE_MARKER) -> Set[int]:
    """
    Collect the subject ids the user opted out of reviewing.

    A subject is excluded when its study material's meaning note contains the
    marker token. Recompute whenever study materials are refetched.
    """
    excluded = {
        material.subject_id
        for material in study_materials
        if material.meaning_note and marker in material.meaning_note
    }
    logger.debug("Found %d excluded subjects", len(excluded))
    return excluded


def is_due(assignment: Assignment, now: Optional[datetime.datetime] = None) -> bool:
    """An assignment is reviewable once started (stage > 0) and available."""
    if assignment.srs_stage <= 0 or assignment.available_at is None:
        return False
    now = now or datetime.datetime.now(datetime.UTC)
    return assignment.available_at <= now


def tasks_for(assignment: Assignment, subject: Subject) -> List[QuizTask]:
    """Quiz tasks for one assignment: radicals get meaning only, others reading and meaning."""
    tasks: List[QuizTask] = []
    if subject.subject_type is not SubjectType.RADICAL and subject.readings:
        tasks.append(QuizTask(assignment, TaskKind.READING))
    if subject.meanings:
        tasks.append(QuizTask(assignment, TaskKind.MEANING))
    return tasks


def shuffle(items: MutableSequence[T], rng: Optional[random.Random] = None) -> MutableSequence[T]:
    """Fisher-Yates shuffle in place; every permutation is equally likely."""
    rng = rng or random.SystemRandom()
    for i in range(len(items) - 1, 0, -1):
        # randint draws without modulo bias
        j = rng.randint(0, i)
        items[i], items[j] = items[j], items[i]
    return items


def build_queue(
    assignments: Iterable[Assignment],
    subjects: Mapping[int, Subject],
    exclusions: Set[int],
    now: Optional[datetime.datetime] = None,
    rng: Optional[random.Random] = None,
) -> List[QuizTask]:
    """
    Build the shuffled review queue.

    Skips excluded subjects, assignments that are not yet due and assignments
    whose subject was not loaded.

    Args:
        assignments: Assignments fetched for the user.
        subjects: Loaded subjects keyed by id.
        exclusions: Subject ids from compute_exclusions().
        now: Reference time for availability (defaults to the current UTC time).
        rng: Random source for the shuffle.

    Returns:
        A list of QuizTask in random order.
    """
    now = now or datetime.datetime.now(datetime.UTC)
    queue: List[QuizTask] = []
    for assignment in assignments:
        if assignment.subject_id in exclusions:
            continue
        if not is_due(assignment, now):
            continue
        subject = subjects.get(assignment.subject_id)
        if subject is None:
            logger.debug("Skipping assignment %d: subject %d not loaded", assignment.id, assignment.subject_id)
            continue
        queue.extend(tasks_for(assignment, subject))

    shuffle(queue, rng)
    logger.info("Built review queue with %d tasks", len(queue))
    return queue
