import logging
import os
from typing import Optional

import click

from . import db
from .api import WaniKaniClient
from .controller import ReviewController, resolve_token
from .errors import AuthError, EmptyAnswerError, FetchError
from .kana import to_hiragana
from .session import ReviewSession
from .structured import Outcome, Progress, SessionStats, Subject, TaskKind

QUIT = ":q"
MARK_CORRECT = "!"
MARK_INCORRECT = "?"


class ClickPresenter:
    """Renders tasks and results on the terminal."""

    def render(self, subject: Subject, kind: TaskKind, progress: Progress) -> None:
        click.echo("")
        click.echo(f"[{progress.position}/{progress.total_estimate}]  accuracy {progress.accuracy}%")
        click.echo(f"{subject.subject_type.value.upper()}: {subject.display}")
        if kind is TaskKind.MEANING:
            click.echo("Enter the meaning")
        else:
            click.echo("Enter the reading (romaji is converted to kana)")

    def render_result(self, outcome: Outcome) -> None:
        if outcome.correct:
            click.echo("✅ Correct!")
        else:
            click.echo("❌ Incorrect")
        click.echo(f"Answers: {', '.join(outcome.acceptable_answers)}")

    def render_finished(self, stats: SessionStats) -> None:
        if stats.total == 0:
            click.echo("🎉 No reviews available! Check back later.")
            return
        click.echo(f"\n🎉 Session complete: {stats.correct}/{stats.total} correct ({stats.accuracy}%)")


def _require_token() -> str:
    token = resolve_token()
    if not token:
        raise click.ClickException("Not logged in. Run 'wk-review login <token>' first.")
    return token


@click.group()
def cli() -> None:
    """Review due WaniKani items from the terminal."""
    level = logging.DEBUG if os.environ.get("DEBUG", "0") == "1" else logging.WARNING
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    db.init_db()


@cli.command("login")
@click.argument("token")
def login(token: str) -> None:
    """Save your API token."""
    controller = ReviewController(ClickPresenter())
    try:
        controller.login(token)
    except AuthError as e:
        raise click.ClickException(str(e))
    click.echo("Token saved.")


@cli.command("logout")
def logout() -> None:
    """Forget the saved API token."""
    ReviewController(ClickPresenter()).logout()
    click.echo("Logged out.")


@cli.command("review")
def review() -> None:
    """Start a review session.

    Type an answer, '!' to mark the item correct, '?' to mark it incorrect,
    or ':q' to stop.
    """
    controller = ReviewController(ClickPresenter(), token=_require_token())
    click.echo("Loading your data...")
    try:
        session = controller.new_session()
    except (AuthError, FetchError) as e:
        raise click.ClickException(f"Error loading your data: {e}")

    try:
        while session.current is not None:
            answer = click.prompt("Your answer", default="", show_default=False)
            if answer == QUIT:
                break
            if answer == MARK_CORRECT:
                controller.mark_correct()
            elif answer == MARK_INCORRECT:
                controller.mark_incorrect()
            else:
                if session.current.kind is TaskKind.READING:
                    click.echo(f"→ {to_hiragana(answer)}")
                try:
                    controller.submit(answer)
                except EmptyAnswerError as e:
                    click.echo(str(e))
                    continue
            controller.next()
    finally:
        controller.finish()


@cli.command("excluded")
def excluded() -> None:
    """List subjects excluded from review by a study note marker."""
    session = ReviewSession()
    try:
        session.load(WaniKaniClient(_require_token()))
    except (AuthError, FetchError) as e:
        raise click.ClickException(f"Error loading your data: {e}")

    subjects = session.excluded_subjects()
    if not subjects:
        click.echo("No excluded items.")
        return
    for subject in subjects:
        meaning = subject.meanings[0] if subject.meanings else "No meaning"
        click.echo(f"  {subject.display}  {meaning}")


@cli.command("history")
@click.option("--user", default=None, help="Username (fetched from the API when omitted)")
@click.option("--limit", default=10, show_default=True, help="Number of sessions to show")
def history(user: Optional[str], limit: int) -> None:
    """Show results of past review sessions."""
    if user is None:
        try:
            user = WaniKaniClient(_require_token()).fetch_user().get("username", "")
        except (AuthError, FetchError) as e:
            raise click.ClickException(str(e))

    rows = db.get_history(user, limit=limit)
    if not rows:
        click.echo(f"No sessions recorded for '{user}'")
        return
    for row in rows:
        click.echo(
            f"  {row['finished_at']:%Y-%m-%d %H:%M}  {row['correct']}/{row['total']} correct ({row['accuracy']}%)"
        )


@cli.command("kana")
@click.argument("text")
def kana(text: str) -> None:
    """Print TEXT converted to hiragana."""
    click.echo(to_hiragana(text))


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
