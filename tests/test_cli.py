"""Tests for the murmur CLI."""

import json

import pytest

from conftest import voter_id
from murmur.audit import AuditEventType
from murmur.cli import build_parser, main
from murmur.config import Settings
from murmur.engine import TrustEngine


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("MURMUR_DB_PATH", "MURMUR_SIGNING_KEY", "MURMUR_VIOLATION_THRESHOLD"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def db(tmp_path):
    return str(tmp_path / "cli.db")


@pytest.fixture
def seeded(db):
    """Database with two voters and one rumor."""
    main(["--json", "--db", db, "voter", "register", "--id", voter_id(0)])
    main(["--json", "--db", db, "voter", "register", "--id", voter_id(1)])
    main(["--json", "--db", db, "claim", "add", "Library closes early", "--id", "rumor-1"])
    return db


def run(db, *argv):
    return main(["--json", "--db", db, *argv])


class TestParser:
    def test_vote_arguments(self):
        args = build_parser().parse_args(["vote", "c1", "v1", "false", "9", "-p", "true"])
        assert args.value is False
        assert args.credits == 9
        assert args.predict is True

    def test_bad_bool(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["vote", "c1", "v1", "maybe", "9"])

    def test_no_command(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main([])
        assert exc.value.code == 1


class TestCommands:
    def test_init_generate_key(self, db, capsys):
        result = run(db, "init", "--generate-key")
        assert result["db_path"] == db
        assert len(result["signing_key"]) == 64
        assert len(result["public_key"]) == 64
        assert json.loads(capsys.readouterr().out)["db_path"] == db

    def test_register_from_secret(self, db):
        result = run(db, "voter", "register", "my secret phrase", "--reputation", "9")
        assert len(result["voter_id"]) == 64
        assert result["reputation"] == 5.0

    def test_register_needs_identity(self, db):
        with pytest.raises(SystemExit):
            run(db, "voter", "register")

    def test_voter_show(self, seeded):
        result = run(seeded, "voter", "show", voter_id(0))
        assert result["reputation"] == 1.0
        assert result["tier"]["tier"] == "novice"

    def test_claim_lifecycle(self, seeded):
        assert run(seeded, "claim", "list")["count"] == 1
        deleted = run(seeded, "claim", "delete", "rumor-1")
        assert deleted["status"] == "deleted"
        assert run(seeded, "claim", "list")["count"] == 0
        assert run(seeded, "claim", "list", "--all")["count"] == 1

    def test_vote(self, seeded):
        result = run(seeded, "vote", "rumor-1", voter_id(0), "true", "25")
        assert result["claim"]["new_aggregate_score"] == 5.0
        result = run(seeded, "vote", "rumor-1", voter_id(1), "false", "64")
        assert result["claim"]["new_aggregate_score"] == -3.0

    def test_vote_error_exits(self, seeded, capsys):
        run(seeded, "vote", "rumor-1", voter_id(0), "true", "25")
        with pytest.raises(SystemExit) as exc:
            run(seeded, "vote", "rumor-1", voter_id(0), "true", "25")
        assert exc.value.code == 1
        assert "AlreadyVoted" in capsys.readouterr().err

    def test_human_output(self, seeded, capsys):
        main(["--db", seeded, "vote", "rumor-1", voter_id(0), "true", "16"])
        out = capsys.readouterr().out
        assert "weight 4.00" in out
        assert "+4.00" in out

    def test_commit_and_history(self, seeded):
        commitment = run(seeded, "commit")
        assert commitment["rumor_count"] == 1
        again = run(seeded, "commit")
        assert again["commitment_id"] == commitment["commitment_id"]

        history = run(seeded, "history")
        assert history["count"] == 1
        assert history["commitments"][0]["valid"] is True

    def test_signed_commit(self, seeded, monkeypatch):
        monkeypatch.setenv("MURMUR_SIGNING_KEY", "22" * 32)
        assert run(seeded, "commit")["signature"]

    def test_violations_revert_report(self, seeded):
        commitment = run(seeded, "commit")
        run(seeded, "vote", "rumor-1", voter_id(0), "true", "25")

        violations = run(seeded, "violations")
        assert violations["count"] == 1
        assert violations["violations"][0]["current_score"] == 5.0
        assert run(seeded, "report")["health"] == "warning"

        reverted = run(seeded, "revert", "rumor-1", commitment["commitment_id"])
        assert reverted["success"] is True
        assert reverted["reverted_score"] == 0.0
        assert run(seeded, "violations", "-c", "rumor-1")["count"] == 0

        engine = TrustEngine.from_settings(Settings(db_path=seeded))
        try:
            claim = engine.get_claim("rumor-1")
            assert claim.aggregate_score == 0.0
            assert claim.total_votes == 1
        finally:
            engine.close()

    def test_revert_all(self, seeded):
        run(seeded, "commit")
        run(seeded, "vote", "rumor-1", voter_id(0), "false", "9")
        result = run(seeded, "revert", "--all")
        assert result["reverted"] == 1
        assert result["failed"] == 0

    def test_revert_needs_arguments(self, seeded):
        with pytest.raises(SystemExit) as exc:
            run(seeded, "revert")
        assert exc.value.code == 2


class TestAuditCommand:
    def test_revert_recorded_across_runs(self, db):
        run(db, "claim", "add", "Bus fares go up in May", "--id", "c1")
        commitment = run(db, "commit")
        run(db, "revert", "c1", commitment["commitment_id"])

        engine = TrustEngine.from_settings(Settings(db_path=db))
        try:
            reverts = engine.audit.query(event_type=AuditEventType.STATE_REVERTED)
            assert [e.subject_id for e in reverts] == ["c1"]
            assert reverts[0].details["commitment_id"] == commitment["commitment_id"]
            assert engine.audit.verify_integrity() == (True, None)
        finally:
            engine.close()

    def test_audit_listing(self, seeded):
        run(seeded, "vote", "rumor-1", voter_id(0), "true", "4")
        commitment = run(seeded, "commit")
        run(seeded, "revert", "rumor-1", commitment["commitment_id"])

        result = run(seeded, "audit")
        events = [e["event_type"] for e in result["entries"]]
        assert events == ["vote.cast", "commitment.created", "state.reverted"]
        assert [e["sequence"] for e in result["entries"]] == [0, 1, 2]
        assert result["summary"]["integrity_verified"] is True

        only = run(seeded, "audit", "-e", "state.reverted", "-s", "rumor-1")
        assert only["count"] == 1

    def test_export_and_check(self, seeded, tmp_path):
        run(seeded, "vote", "rumor-1", voter_id(1), "false", "9")
        path = tmp_path / "trail.json"
        run(seeded, "audit", "--export", str(path))

        checked = run(seeded, "audit", "--check", str(path))
        assert checked["total_entries"] == 1
        assert checked["integrity_verified"] is True

    def test_check_rejects_tampered_export(self, seeded, tmp_path, capsys):
        run(seeded, "vote", "rumor-1", voter_id(1), "false", "9")
        path = tmp_path / "trail.json"
        run(seeded, "audit", "--export", str(path))
        entries = json.loads(path.read_text())
        entries[0]["details"]["credits_spent"] = 100
        path.write_text(json.dumps(entries))

        with pytest.raises(SystemExit) as exc:
            run(seeded, "audit", "--check", str(path))
        assert exc.value.code == 1
        assert "corrupted entry at index 0" in capsys.readouterr().err
