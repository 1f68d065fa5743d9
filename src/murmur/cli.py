#!/usr/bin/env python3
"""
murmur CLI — Offline command-line interface to a murmur database.

Works directly against the SQLite store (no server required), except
`serve`, which starts the HTTP API.

Commands:
    init       - Create the database (optionally print a new signing key)
    voter      - Register / show voters, update reputation
    claim      - Submit / list / delete rumors
    vote       - Cast a vote
    commit     - Create this hour's state commitment
    history    - List recent commitments
    violations - Compare current scores against recent commitments
    revert     - Revert a rumor (or every violated rumor) to committed state
    report     - Integrity health summary
    audit      - Show, export or verify the audit trail
    serve      - Run the HTTP API with uvicorn
"""

import argparse
import json
import sys
from datetime import datetime, timezone
from typing import Optional

from nacl.encoding import HexEncoder
from nacl.signing import SigningKey

from murmur.audit import AuditEventType, AuditTrail
from murmur.config import Settings
from murmur.engine import TrustEngine, nullifier
from murmur.errors import MurmurError
from murmur.scoring import reputation_tier


def _output(data: dict, args: argparse.Namespace, human_fn=None):
    """Output data as JSON or pretty-printed."""
    if getattr(args, "json", False) or human_fn is None:
        print(json.dumps(data, indent=2, default=str))
    else:
        human_fn(data)


def _parse_bool(value: str) -> bool:
    v = value.strip().lower()
    if v in ("true", "t", "yes", "1"):
        return True
    if v in ("false", "f", "no", "0"):
        return False
    raise argparse.ArgumentTypeError(f"expected true/false, got {value!r}")


def _settings(args) -> Settings:
    settings = Settings.from_env()
    if args.db:
        settings.db_path = args.db
    return settings


def _engine(args) -> TrustEngine:
    return TrustEngine.from_settings(_settings(args))


# ─── Commands ──────────────────────────────────────────────────────

def cmd_init(args):
    settings = _settings(args)
    engine = TrustEngine.from_settings(settings)
    engine.close()
    result = {"db_path": settings.db_path}
    if args.generate_key:
        key = SigningKey.generate()
        result["signing_key"] = key.encode(encoder=HexEncoder).decode()
        result["public_key"] = key.verify_key.encode(encoder=HexEncoder).decode()

    def human(d):
        print(f"✅ Database ready: {d['db_path']}")
        if "signing_key" in d:
            print(f"   Signing key: {d['signing_key']}")
            print(f"   Public key:  {d['public_key']}")
            print("   Export MURMUR_SIGNING_KEY to sign commitments.")

    _output(result, args, human)
    return result


def cmd_voter(args):
    engine = _engine(args)
    try:
        if args.voter_command == "register":
            voter_id = args.id or nullifier(args.secret)
            voter = engine.register_voter(voter_id, reputation=args.reputation)
            result = voter.to_dict()
        elif args.voter_command == "show":
            voter = engine.get_voter(args.voter_id)
            result = {**voter.to_dict(), "tier": reputation_tier(voter.reputation)}
        else:
            result = engine.votes.update_voter_reputation(args.voter_id).to_dict()
            result["voter_id"] = args.voter_id
    finally:
        engine.close()

    def human(d):
        if "reputation" in d:
            print(f"👤 Voter {d['voter_id']}")
            print(f"   Reputation: {d['reputation']:.3f}")
            if "tier" in d:
                print(f"   Tier:       {d['tier']['tier']}")
        else:
            print(f"👤 Voter {d['voter_id']}")
            print(f"   Reputation: {d['previous_reputation']:.3f} → {d['new_reputation']:.3f}")
            print(f"   Accuracy:   {d['accuracy_score']:.2f} over {d['votes_analyzed']} votes")

    _output(result, args, human)
    return result


def cmd_claim(args):
    engine = _engine(args)
    try:
        if args.claim_command == "add":
            result = engine.submit_claim(args.content, claim_id=args.id).to_dict()
        elif args.claim_command == "delete":
            result = engine.delete_claim(args.claim_id).to_dict()
        else:
            claims = engine.list_claims(include_deleted=args.all)
            result = {"claims": [c.to_dict() for c in claims], "count": len(claims)}
    finally:
        engine.close()

    def human(d):
        if "claims" in d:
            print(f"📋 {d['count']} rumors")
            for c in d["claims"]:
                print(f"   {c['claim_id']}  {c['aggregate_score']:+8.2f}  "
                      f"[{c['status']}] {c['content'][:50]}")
        else:
            print(f"📝 Rumor {d['claim_id']} [{d['status']}]")
            print(f"   Score: {d['aggregate_score']:+.2f} ({d['total_votes']} votes)")

    _output(result, args, human)
    return result


def cmd_vote(args):
    engine = _engine(args)
    try:
        result = engine.votes.cast_vote(
            args.claim_id, args.voter_id, args.value, args.credits,
            predicted_consensus=args.predict,
        ).to_dict()
    finally:
        engine.close()

    def human(d):
        v, c = d["vote"], d["claim"]
        print(f"🗳️  Vote recorded: weight {v['quadratic_weight']:.2f}, "
              f"bonus {v['bayesian_bonus']:.2f}, trust {v['final_trust_score']:.2f}")
        print(f"   Rumor {c['claim_id']}: score {c['new_aggregate_score']:+.2f} "
              f"({c['true_votes']} true / {c['false_votes']} false)")

    _output(result, args, human)
    return result


def cmd_commit(args):
    engine = _engine(args)
    try:
        commitment = engine.commitments.create_hourly_commitment()
    finally:
        engine.close()
    if commitment is None:
        print("❌ State commitment failed", file=sys.stderr)
        sys.exit(1)
    result = commitment.to_dict()

    def human(d):
        print("📦 State commitment")
        print(f"   Hour key:  {d['hour_key']}")
        print(f"   Root hash: {d['root_hash'][:16]}…")
        print(f"   Rumors:    {d['rumor_count']}")
        print(f"   Signed:    {'yes' if d['signature'] else 'no'}")

    _output(result, args, human)
    return result


def cmd_history(args):
    engine = _engine(args)
    try:
        commitments = engine.commitments.get_commitment_history(args.limit)
        result = {
            "commitments": [
                {**c.to_dict(), "valid": engine.commitments.verify_commitment(c).is_valid}
                for c in commitments
            ],
            "count": len(commitments),
        }
    finally:
        engine.close()

    def human(d):
        print(f"📚 {d['count']} commitments")
        for c in d["commitments"]:
            mark = "✅" if c["valid"] else "❌"
            print(f"   {mark} {c['hour_key']}  {c['root_hash'][:16]}…  "
                  f"{c['rumor_count']} rumors  ({c['commitment_id']})")

    _output(result, args, human)
    return result


def cmd_violations(args):
    engine = _engine(args)
    try:
        violations = engine.detector.check_violations(claim_id=args.claim, hours_back=args.hours)
    finally:
        engine.close()
    result = {"violations": [v.to_dict() for v in violations], "count": len(violations)}

    def human(d):
        if not d["count"]:
            print("✅ No violations")
            return
        for v in d["violations"]:
            print(f"⚠️  Rumor {v['claim_id']}: committed {v['committed_score']:+.2f}, "
                  f"current {v['current_score']:+.2f} "
                  f"({v['percent_variance']:.1f}% in {v['commitment']['hour_key']})")

    _output(result, args, human)
    return result


def cmd_revert(args):
    engine = _engine(args)
    try:
        if args.all:
            result = engine.reverter.revert_all_violations(hours_back=args.hours).to_dict()
        else:
            if not args.claim_id or not args.commitment_id:
                print("❌ revert needs CLAIM_ID and COMMITMENT_ID, or --all", file=sys.stderr)
                sys.exit(2)
            result = engine.reverter.revert_to_committed_state(
                args.claim_id, args.commitment_id
            ).to_dict()
    finally:
        engine.close()

    def human(d):
        if "results" in d:
            print(f"↩️  Reverted {d['reverted']}, failed {d['failed']}")
        else:
            print(f"↩️  {d['message']}")

    _output(result, args, human)
    return result


def cmd_report(args):
    engine = _engine(args)
    try:
        result = engine.detector.integrity_report(hours_back=args.hours)
    finally:
        engine.close()

    def human(d):
        icon = {"good": "✅", "warning": "⚠️ ", "critical": "🚨"}[d["health"]]
        print(f"{icon} Integrity: {d['health']} ({d['violations']} violations, last {d['hours_back']}h)")
        for cid in d["sample_claim_ids"]:
            print(f"   - {cid}")
        print(f"   Next commitment: {d['next_commitment']}")

    _output(result, args, human)
    return result


def _print_audit_summary(s):
    mark = "✅" if s["integrity_verified"] else "❌"
    print(f"{mark} Audit chain: {s['total_entries']} entries, "
          f"{s['unique_subjects']} subjects")
    for event, count in sorted(s["event_counts"].items()):
        print(f"   {event:22s} {count}")


def cmd_audit(args):
    if args.check:
        try:
            with open(args.check) as f:
                trail = AuditTrail.from_json(f.read())
        except ValueError as e:
            print(f"❌ {e}", file=sys.stderr)
            sys.exit(1)
        result = trail.summary()
        _output(result, args, _print_audit_summary)
        return result

    engine = _engine(args)
    try:
        entries = engine.audit.query(subject_id=args.subject, event_type=args.event,
                                     limit=args.limit)
        if args.export:
            with open(args.export, "w") as f:
                f.write(engine.audit.export_json())
        result = {
            "entries": [e.to_dict() for e in entries],
            "count": len(entries),
            "summary": engine.audit.summary(),
        }
    finally:
        engine.close()

    def human(d):
        for e in d["entries"]:
            when = datetime.fromtimestamp(e["timestamp"], timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
            print(f"   #{e['sequence']:<5d} {when}  {e['event_type']:22s} {e['subject_id']}")
        _print_audit_summary(d["summary"])

    _output(result, args, human)
    return result


def cmd_serve(args):
    import uvicorn

    from murmur.api import create_app

    settings = _settings(args)
    if args.scheduler:
        settings.enable_scheduler = True
    uvicorn.run(create_app(settings=settings), host=args.host, port=args.port,
                log_level=settings.log_level.lower())
    return {"host": args.host, "port": args.port}


# ─── Parser ────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="murmur",
        description="murmur — rumor trust scoring CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--json", action="store_true", help="Machine-readable JSON output")
    parser.add_argument("--db", help="SQLite database path (default: $MURMUR_DB_PATH or murmur.db)")

    sub = parser.add_subparsers(dest="command", help="Available commands")

    p = sub.add_parser("init", help="Create the database")
    p.add_argument("--generate-key", action="store_true", help="Print a new Ed25519 signing key")

    p = sub.add_parser("voter", help="Manage voters")
    vsub = p.add_subparsers(dest="voter_command", required=True)
    vp = vsub.add_parser("register", help="Register a voter")
    vp.add_argument("secret", nargs="?", default="", help="Secret phrase (hashed into the voter id)")
    vp.add_argument("--id", help="Explicit 64-char hex voter id")
    vp.add_argument("--reputation", type=float, help="Initial reputation")
    vp = vsub.add_parser("show", help="Show a voter")
    vp.add_argument("voter_id")
    vp = vsub.add_parser("reputation", help="Update reputation from recent resolved votes")
    vp.add_argument("voter_id")

    p = sub.add_parser("claim", help="Manage rumors")
    csub = p.add_subparsers(dest="claim_command", required=True)
    cp = csub.add_parser("add", help="Submit a rumor")
    cp.add_argument("content")
    cp.add_argument("--id", help="Explicit rumor id")
    cp = csub.add_parser("list", help="List rumors")
    cp.add_argument("--all", action="store_true", help="Include deleted rumors")
    cp = csub.add_parser("delete", help="Soft-delete a rumor")
    cp.add_argument("claim_id")

    p = sub.add_parser("vote", help="Cast a vote")
    p.add_argument("claim_id")
    p.add_argument("voter_id")
    p.add_argument("value", type=_parse_bool, help="true or false")
    p.add_argument("credits", type=int, help="Credits to spend (1-100)")
    p.add_argument("-p", "--predict", type=_parse_bool, help="Predicted consensus (true/false)")

    sub.add_parser("commit", help="Create this hour's state commitment")

    p = sub.add_parser("history", help="List recent commitments")
    p.add_argument("-n", "--limit", type=int, default=24)

    p = sub.add_parser("violations", help="Check for state violations")
    p.add_argument("-c", "--claim", help="Only this rumor")
    p.add_argument("--hours", type=int, default=24)

    p = sub.add_parser("revert", help="Revert to committed state")
    p.add_argument("claim_id", nargs="?")
    p.add_argument("commitment_id", nargs="?")
    p.add_argument("--all", action="store_true", help="Revert every violated rumor")
    p.add_argument("--hours", type=int, default=24)

    p = sub.add_parser("report", help="Integrity health summary")
    p.add_argument("--hours", type=int, default=24)

    p = sub.add_parser("audit", help="Show the hash-chained audit trail")
    p.add_argument("-s", "--subject", help="Only entries for this rumor, voter or commitment id")
    p.add_argument("-e", "--event", choices=[e.value for e in AuditEventType],
                   help="Only this event type")
    p.add_argument("-n", "--limit", type=int, default=50)
    p.add_argument("--export", metavar="PATH", help="Write the full trail as JSON")
    p.add_argument("--check", metavar="PATH", help="Verify an exported trail file instead")

    p = sub.add_parser("serve", help="Run the HTTP API")
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=8000)
    p.add_argument("--scheduler", action="store_true", help="Run the hourly commitment scheduler")

    return parser


def main(argv: Optional[list[str]] = None) -> Optional[dict]:
    """CLI entry point. Returns result dict for testing."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.command == "voter" and args.voter_command == "register" and not (args.id or args.secret):
        parser.error("voter register needs a secret phrase or --id")

    commands = {
        "init": cmd_init,
        "voter": cmd_voter,
        "claim": cmd_claim,
        "vote": cmd_vote,
        "commit": cmd_commit,
        "history": cmd_history,
        "violations": cmd_violations,
        "revert": cmd_revert,
        "report": cmd_report,
        "audit": cmd_audit,
        "serve": cmd_serve,
    }

    try:
        return commands[args.command](args)
    except MurmurError as e:
        print(f"❌ {e.code}: {e.message}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
