"""Tests for the reviewguard CLI."""

import tempfile

from click.testing import CliRunner

from reviewguard.cli import main
from reviewguard.store.review_store import JsonReviewStore


def _clean_env(monkeypatch):
    for var in ("TURNSTILE_SECRET_KEY", "REVIEWGUARD_ENV", "REVIEWGUARD_FILTERS", "REVIEWGUARD_DATA_DIR"):
        monkeypatch.delenv(var, raising=False)


def test_fingerprint():
    result = CliRunner().invoke(main, ["fingerprint", "a"])
    assert result.exit_code == 0
    assert "97" in result.output


def test_compare():
    result = CliRunner().invoke(main, ["compare", "same words here", "Same  words here"])
    assert result.exit_code == 0
    assert "1.0000" in result.output
    assert "near-duplicate" in result.output


def test_scan():
    result = CliRunner().invoke(main, ["scan", "this broker is a scam"])
    assert result.exit_code == 0
    assert "Contains profanity" in result.output


def test_submit_held_publish(monkeypatch):
    _clean_env(monkeypatch)
    runner = CliRunner()
    with tempfile.TemporaryDirectory() as tmpdir:
        ok = runner.invoke(main, [
            "submit", "etoro", "u1", "-r", "5", "-b", "Reliable platform with fair overnight fees.", "-d", tmpdir,
        ])
        assert ok.exit_code == 0, ok.output
        assert "Published" in ok.output

        flagged = runner.invoke(main, [
            "submit", "etoro", "u2", "-r", "1", "-b", "A ponzi outfit, they never paid out.", "-d", tmpdir,
        ])
        assert flagged.exit_code == 0, flagged.output
        assert "Held for moderation" in flagged.output

        listing = runner.invoke(main, ["held", "-d", tmpdir])
        assert listing.exit_code == 0
        assert "Held reviews (1)" in listing.output

        review_id = JsonReviewStore(tmpdir).list_held()[0].id
        released = runner.invoke(main, ["publish", review_id, "-d", tmpdir])
        assert released.exit_code == 0
        assert JsonReviewStore(tmpdir).list_held() == []

        missing = runner.invoke(main, ["publish", "nope", "-d", tmpdir])
        assert missing.exit_code != 0


def test_submit_rejected(monkeypatch):
    _clean_env(monkeypatch)
    with tempfile.TemporaryDirectory() as tmpdir:
        result = CliRunner().invoke(main, ["submit", "etoro", "u1", "-r", "0", "-b", "too short", "-d", tmpdir])
        assert result.exit_code == 1
        assert "Rejected" in result.output
