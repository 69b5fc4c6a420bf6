import random
from unittest.mock import MagicMock

import pytest

from conftest import FUTURE, SUBJECTS, assignment_record, make_client, study_material_record
from wk_review.errors import (
    AuthError,
    EmptyAnswerError,
    FetchError,
    ReportingError,
    SessionStateError,
    UnresolvedSubjectError,
)
from wk_review.reporting import ReviewReporter
from wk_review.scheduler import EXCLUDE_MARKER
from wk_review.session import ReviewSession, SessionState
from wk_review.structured import Assignment, QuizTask, Subject, SubjectType, TaskKind


def correct_answer(session):
    subject = session.current_subject
    return subject.answers_for(session.current.kind)[0]


def answer_all(session, pattern):
    """Answer every task; pattern[i] says whether answer i is right."""
    for right in pattern:
        session.submit(correct_answer(session) if right else "zzz")
        session.advance()


def test_load_builds_queue_and_presents_first_task():
    client = make_client([assignment_record(10, 2)])
    session = ReviewSession(rng=random.Random(0))
    session.load(client)

    assert session.state is SessionState.ACTIVE
    assert session.username == "tester"
    assert session.current is not None
    assert len(session.queue) == 1
    progress = session.progress()
    assert (progress.position, progress.total_estimate, progress.accuracy) == (1, 2, 100)


def test_loading_fetches_subjects_for_due_assignments_only():
    client = make_client([
        assignment_record(10, 2),
        assignment_record(11, 3, srs_stage=0),
        assignment_record(12, 4, available_at=FUTURE),
    ])
    session = ReviewSession()
    session.load(client)
    (ids,), _ = client.fetch_subjects.call_args
    assert set(ids) == {2}


def test_excluded_subjects_are_not_queued():
    client = make_client(
        [assignment_record(10, 2), assignment_record(11, 4)],
        study_materials=[study_material_record(4, f"skip {EXCLUDE_MARKER}")],
    )
    session = ReviewSession()
    session.load(client)

    seen = {session.current.subject_id} | {task.subject_id for task in session.queue}
    assert seen == {2}
    assert [s.id for s in session.excluded_subjects()] == [4]


def test_empty_queue_is_exhausted_right_away():
    session = ReviewSession()
    session.load(make_client([]))
    assert session.state is SessionState.EXHAUSTED
    assert session.current is None


def test_advance_on_empty_queue_exhausts():
    session = ReviewSession()
    session.load(make_client([assignment_record(10, 1)]))  # radical: one task
    assert session.current.kind is TaskKind.MEANING
    session.submit("ground")

    assert session.advance() is None
    assert session.state is SessionState.EXHAUSTED
    assert session.current is None
    assert session.advance() is None


def test_submit_records_stats_and_returns_answers():
    session = ReviewSession()
    session.load(make_client([assignment_record(10, 1)]))
    outcome = session.submit("Ground!")
    assert outcome.correct
    assert outcome.acceptable_answers == ["Ground"]
    assert (session.stats.total, session.stats.correct, session.stats.incorrect) == (1, 1, 0)


def test_romaji_reading_answer_is_accepted():
    session = ReviewSession()
    session.load(make_client([assignment_record(10, 3)]))
    while session.current.kind is not TaskKind.READING:
        session.submit("today")
        session.advance()
    assert session.submit("kyou").correct


@pytest.mark.parametrize("pattern", [
    [True, True, True, True],
    [True, False, True, False],
    [False, False, False, True],
    [True, True, True, False],
])
def test_accuracy_after_answers(pattern):
    session = ReviewSession()
    session.load(make_client([assignment_record(10, 2), assignment_record(11, 3)]))
    answer_all(session, pattern)

    stats = session.stats
    assert stats.total == len(pattern)
    assert stats.correct == sum(pattern)
    assert stats.total == stats.correct + stats.incorrect
    assert session.progress().accuracy == round(sum(pattern) / len(pattern) * 100)
    assert session.state is SessionState.EXHAUSTED


def test_progress_counts_current_task():
    session = ReviewSession()
    session.load(make_client([assignment_record(10, 2), assignment_record(11, 3)]))
    session.submit("zzz")
    session.advance()
    progress = session.progress()
    assert progress.position == 2
    assert progress.total_estimate == 4
    assert progress.accuracy == 0


def test_second_result_for_same_task_is_rejected():
    session = ReviewSession()
    session.load(make_client([assignment_record(10, 2)]))
    session.submit("big")
    with pytest.raises(SessionStateError):
        session.submit("big")
    with pytest.raises(SessionStateError):
        session.mark(True)
    assert session.stats.total == 1


def test_blank_answer_does_not_count():
    session = ReviewSession()
    session.load(make_client([assignment_record(10, 2)]))
    with pytest.raises(EmptyAnswerError):
        session.submit("   ")
    assert session.stats.total == 0


def test_mark_records_self_graded_result():
    session = ReviewSession()
    session.load(make_client([assignment_record(10, 2)]))
    outcome = session.mark(False)
    assert not outcome.correct
    assert session.stats.incorrect == 1


def test_submit_without_task_is_rejected():
    session = ReviewSession()
    with pytest.raises(SessionStateError):
        session.submit("dog")
    session.load(make_client([]))
    with pytest.raises(SessionStateError):
        session.submit("dog")


def test_unresolved_subject_is_skipped_on_advance():
    ok = Subject(id=1, subject_type=SubjectType.RADICAL, characters=None, slug="ground", meanings=("Ground",))
    dangling = QuizTask(Assignment(20, 99, 1, None), TaskKind.MEANING)
    good = QuizTask(Assignment(21, 1, 1, None), TaskKind.MEANING)

    session = ReviewSession()
    session.load_tasks([dangling, good], [ok])
    assert session.current == good
    assert not session.queue
    with pytest.raises(UnresolvedSubjectError):
        session.subject_for(dangling)


def test_failed_load_keeps_no_data_and_can_be_retried():
    client = make_client([assignment_record(10, 2)])
    client.fetch_study_materials.side_effect = FetchError("API request failed: 500")

    session = ReviewSession()
    with pytest.raises(FetchError):
        session.load(client)
    assert session.state is SessionState.FAILED
    assert session.current is None
    assert not session.queue
    assert not session.data.subjects

    client.fetch_study_materials.side_effect = None
    session.load(client)
    assert session.state is SessionState.ACTIVE


def test_auth_error_propagates():
    client = make_client([])
    client.fetch_user.side_effect = AuthError("API token rejected (401)")
    session = ReviewSession()
    with pytest.raises(AuthError):
        session.load(client)
    assert session.state is SessionState.FAILED


def test_malformed_records_become_fetch_error():
    client = make_client([{"id": 1, "data": {}}])
    session = ReviewSession()
    with pytest.raises(FetchError):
        session.load(client)
    assert session.state is SessionState.FAILED


def test_load_twice_is_rejected():
    session = ReviewSession()
    session.load(make_client([assignment_record(10, 2)]))
    with pytest.raises(SessionStateError):
        session.load(make_client([]))


def test_each_result_is_reported():
    reporter = MagicMock()
    session = ReviewSession(reporter=reporter)
    session.load(make_client([assignment_record(10, 1)]))
    outcome = session.submit("wrong")
    reporter.report.assert_called_once_with(outcome)


def test_reporting_failure_does_not_affect_session():
    client = make_client([assignment_record(10, 2)])
    client.submit_review.side_effect = ReportingError("Submitting review for subject 2 failed: 503")
    reporter = ReviewReporter(client)
    session = ReviewSession(reporter=reporter)
    session.load(client)

    session.submit(correct_answer(session))
    session.advance()
    session.submit(correct_answer(session))
    session.advance()
    reporter.close(wait=True)

    assert session.stats.correct == 2
    assert session.state is SessionState.EXHAUSTED
    assert client.submit_review.call_count == 2


def test_discard_returns_to_idle():
    session = ReviewSession()
    session.load(make_client([assignment_record(10, 2)]))
    session.submit("big")
    session.discard()
    assert session.state is SessionState.IDLE
    assert session.stats.total == 0
    assert session.current is None


def test_accuracy_one_of_eight_rounds_up():
    session = ReviewSession()
    session.load(make_client([assignment_record(10 + i, 2) for i in range(4)]))
    answer_all(session, [True] + [False] * 7)
    assert session.progress().accuracy == 13


def test_subject_of_unknown_type_is_skipped():
    subjects = dict(SUBJECTS)
    subjects[5] = {"id": 5, "object": "future_type", "data": {"characters": "？", "meanings": [{"meaning": "Mystery"}]}}
    client = make_client([assignment_record(10, 2), assignment_record(11, 5)], subjects=subjects)

    session = ReviewSession()
    session.load(client)

    assert session.state is SessionState.ACTIVE
    assert 5 not in session.data.subjects
    seen = {session.current.subject_id} | {task.subject_id for task in session.queue}
    assert seen == {2}


def test_excluded_subjects_include_ones_not_yet_due():
    client = make_client(
        [assignment_record(10, 2), assignment_record(11, 4, available_at=FUTURE)],
        study_materials=[study_material_record(4, EXCLUDE_MARKER)],
    )
    session = ReviewSession()
    session.load(client)

    assert [s.id for s in session.excluded_subjects()] == [4]
    seen = {session.current.subject_id} | {task.subject_id for task in session.queue}
    assert seen == {2}
    assert client.fetch_subjects.call_count == 2
