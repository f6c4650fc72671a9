"""reviewguard CLI — operator tools for the review moderation pipeline."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from reviewguard import __version__

console = Console()


def _load_settings(data_dir: str | None):
    from reviewguard.config import ConfigurationError, Settings

    try:
        settings = Settings.from_env()
    except ConfigurationError as e:
        raise click.ClickException(str(e))
    if data_dir:
        settings = replace(settings, data_dir=Path(data_dir))
    return settings


def _load_filters(filters: str | None):
    from reviewguard.moderation.filters import FilterConfig

    if not filters:
        return FilterConfig()
    try:
        return FilterConfig.from_yaml(filters)
    except (OSError, ValueError) as e:
        raise click.ClickException(f"Cannot load filter config: {e}")


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def main(verbose: bool):
    """reviewguard — moderation pipeline for broker reviews.

    Fingerprint and scan review text, run submissions through the full
    pipeline against a local store, and work the held-review queue.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


# ── Text tools ───────────────────────────────────────────────────────


@main.command()
@click.argument("text")
def fingerprint(text: str):
    """Print the 32-bit fingerprint of TEXT."""
    from reviewguard.moderation.fingerprint import fingerprint as compute

    fp = compute(text)
    console.print(f"{fp} (0x{fp:08x})")


@main.command()
@click.argument("text_a")
@click.argument("text_b")
def compare(text_a: str, text_b: str):
    """Compare two texts the way the duplicate checker does."""
    from reviewguard.moderation.fingerprint import fingerprint as compute
    from reviewguard.moderation.fingerprint import is_near_duplicate, similarity

    score = similarity(compute(text_a), compute(text_b))
    verdict = "[red]near-duplicate[/]" if is_near_duplicate(score) else "[green]distinct[/]"
    console.print(f"similarity {score:.4f} — {verdict}")


@main.command()
@click.argument("text")
@click.option("--filters", "-f", default=None, help="YAML filter configuration")
def scan(text: str, filters: str | None):
    """Run the profanity and PII classifiers over TEXT."""
    from reviewguard.moderation.filters import PIIClassifier, ProfanityClassifier
    from reviewguard.moderation.pipeline import build_admin_notes

    config = _load_filters(filters)
    profanity = ProfanityClassifier(config).classify(text)
    pii = PIIClassifier(config).classify(profanity.cleaned_text)

    table = Table(title="Classifier verdicts")
    table.add_column("Classifier", style="cyan")
    table.add_column("Flagged", justify="center")
    table.add_column("Categories")
    for name, verdict in (("profanity", profanity), ("pii", pii)):
        flagged = "[red]Y[/]" if verdict.flagged else "[green]N[/]"
        table.add_row(name, flagged, ", ".join(verdict.categories))
    console.print(table)

    if profanity.flagged or pii.flagged:
        console.print(Panel(escape(pii.cleaned_text), title="Cleaned text"))
        console.print(f"  Notes: {build_admin_notes(profanity, pii)}")


# ── Submission ───────────────────────────────────────────────────────


@main.command()
@click.argument("broker_id")
@click.argument("user_id")
@click.option("--rating", "-r", type=int, required=True, help="Star rating, 1-5")
@click.option("--body", "-b", required=True, help="Review text")
@click.option("--captcha-token", "-t", default="cli", help="Captcha token to verify")
@click.option("--data-dir", "-d", default=None, help="Review store directory")
def submit(broker_id: str, user_id: str, rating: int, body: str, captcha_token: str, data_dir: str | None):
    """Submit a review through the full moderation pipeline."""
    from reviewguard.moderation.models import ReviewSubmission
    from reviewguard.moderation.pipeline import ReviewPipeline

    pipeline = ReviewPipeline.from_settings(_load_settings(data_dir))
    result = asyncio.run(
        pipeline.submit(
            broker_id,
            user_id,
            ReviewSubmission(rating=rating, body=body, captcha_token=captcha_token),
        )
    )

    if not result.success:
        console.print(f"[red]Rejected[/] ({result.rejection.value}): {escape(result.error or '')}")
        raise SystemExit(1)
    if result.flagged:
        console.print(f"[yellow]Held for moderation[/]: {result.review_id}")
        console.print(f"  Notes: {result.admin_notes}")
    else:
        console.print(f"[green]Published[/]: {result.review_id}")


# ── Moderation queue ─────────────────────────────────────────────────


@main.command()
@click.option("--broker", default=None, help="Only show reviews of this broker")
@click.option("--data-dir", "-d", default=None, help="Review store directory")
def held(broker: str | None, data_dir: str | None):
    """List reviews held for manual moderation."""
    from reviewguard.store.review_store import JsonReviewStore, ReviewStoreError

    store = JsonReviewStore(_load_settings(data_dir).data_dir)
    try:
        reviews = store.list_held(broker)
    except ReviewStoreError as e:
        raise click.ClickException(str(e))

    if not reviews:
        console.print("[green]No reviews awaiting moderation.[/]")
        return

    table = Table(title=f"Held reviews ({len(reviews)})")
    table.add_column("ID", style="dim")
    table.add_column("Broker", style="cyan")
    table.add_column("Author")
    table.add_column("Rating", justify="right")
    table.add_column("Notes")
    table.add_column("Body")
    for r in reviews:
        table.add_row(r.id, r.broker_id, r.author_id, str(r.rating), escape(r.admin_notes or ""), escape(r.body[:50]))
    console.print(table)


@main.command()
@click.argument("review_id")
@click.option("--notes", default=None, help="Replace the admin notes")
@click.option("--data-dir", "-d", default=None, help="Review store directory")
def publish(review_id: str, notes: str | None, data_dir: str | None):
    """Release a held review after manual moderation."""
    from reviewguard.store.review_store import JsonReviewStore, ReviewStoreError

    store = JsonReviewStore(_load_settings(data_dir).data_dir)
    try:
        review = store.publish(review_id, admin_notes=notes)
    except (ValueError, ReviewStoreError) as e:
        raise click.ClickException(str(e))
    console.print(f"[green]Published[/] {review.id} at {review.published_at}")


if __name__ == "__main__":
    main()
