import logging
import os
from typing import Any, Callable, Optional, Protocol

from . import db
from .api import WaniKaniClient
from .errors import AuthError, ReviewError, SessionStateError
from .reporting import ReviewReporter
from .session import ReviewSession
from .structured import Outcome, Progress, SessionStats, Subject, TaskKind

logger = logging.getLogger(__name__)


class Presenter(Protocol):
    """What the controller needs from a user interface."""

    def render(self, subject: Subject, kind: TaskKind, progress: Progress) -> None: ...

    def render_result(self, outcome: Outcome) -> None: ...

    def render_finished(self, stats: SessionStats) -> None: ...


def resolve_token() -> Optional[str]:
    """The API token from WANIKANI_API_TOKEN, else the stored one."""
    return os.environ.get("WANIKANI_API_TOKEN") or db.load_token()


class ReviewController:
    """
    Binds one ReviewSession at a time to a Presenter.

    Presentation events (submit, mark correct/incorrect, next, new session,
    logout) come in here and are turned into session calls; whatever should
    be shown next is pushed back to the presenter.
    """

    def __init__(self, presenter: Presenter, token: Optional[str] = None,
                 client_factory: Optional[Callable[[str], Any]] = None) -> None:
        self.presenter = presenter
        self.token = token
        self.client_factory = client_factory or WaniKaniClient
        self.session: Optional[ReviewSession] = None
        self.reporter: Optional[ReviewReporter] = None

    def login(self, token: str) -> None:
        token = token.strip()
        if not token:
            raise AuthError("Please enter your API token")
        self.finish()
        db.save_token(token)
        self.token = token

    def new_session(self) -> ReviewSession:
        """Close any running session and load a fresh one."""
        if not self.token:
            raise AuthError("Not logged in")
        self.finish()

        client = self.client_factory(self.token)
        reporter = ReviewReporter(client)
        session = ReviewSession(reporter=reporter)
        try:
            session.load(client)
        except ReviewError:
            reporter.close(wait=False)
            raise
        self.session = session
        self.reporter = reporter
        self._show()
        return session

    def _active(self) -> ReviewSession:
        if self.session is None:
            raise SessionStateError("No review session is running")
        return self.session

    def _show(self) -> None:
        session = self._active()
        subject = session.current_subject
        if subject is None or session.current is None:
            self.presenter.render_finished(session.stats)
        else:
            self.presenter.render(subject, session.current.kind, session.progress())

    def submit(self, text: str) -> Outcome:
        outcome = self._active().submit(text)
        self.presenter.render_result(outcome)
        return outcome

    def mark_correct(self) -> Outcome:
        outcome = self._active().mark(True)
        self.presenter.render_result(outcome)
        return outcome

    def mark_incorrect(self) -> Outcome:
        outcome = self._active().mark(False)
        self.presenter.render_result(outcome)
        return outcome

    def next(self) -> None:
        self._active().advance()
        self._show()

    def finish(self) -> None:
        """Save the running session's stats and wait for pending reports."""
        if self.session is not None:
            db.record_session(self.session.username or "", self.session.stats, self.session.started_at)
            self.session.discard()
            self.session = None
        if self.reporter is not None:
            self.reporter.close(wait=True)
            self.reporter = None

    def logout(self) -> None:
        """Forget the token and all session state."""
        self.finish()
        db.clear_token()
        self.token = None
        logger.info("Logged out")
