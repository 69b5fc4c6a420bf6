import concurrent.futures
import logging
from typing import Any

from .errors import ReportingError
from .structured import Outcome

logger = logging.getLogger(__name__)


class ReviewReporter:
    """
    Sends review outcomes to the API without blocking the session.

    Delivery is best effort: each outcome is submitted at most once, failures
    are logged and dropped, and reports may complete in any order.
    """

    def __init__(self, client: Any, max_workers: int = 2) -> None:
        self.client = client
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="wk-report"
        )

    def _send(self, outcome: Outcome) -> bool:
        try:
            self.client.submit_review(
                outcome.task.subject_id,
                outcome.meaning_incorrect,
                outcome.reading_incorrect,
            )
        except ReportingError as e:
            logger.warning("Review not reported: %s", e)
            return False
        except Exception:
            logger.exception("Review not reported for subject %d", outcome.task.subject_id)
            return False
        return True

    def report(self, outcome: Outcome) -> "concurrent.futures.Future[bool]":
        """Queue an outcome for submission and return immediately."""
        return self._executor.submit(self._send, outcome)

    def close(self, wait: bool = True) -> None:
        """Stop accepting reports; with wait=True, block until pending ones finish."""
        self._executor.shutdown(wait=wait)
