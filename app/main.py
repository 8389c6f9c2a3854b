"""
Customer Success Health Engine - Command Line Entry Point

    python -m app.main score accounts.json [--config health.json] [--severity critical] [--limit 20]
    python -m app.main update churn_risk-acct-1 --status acknowledged --author jane@example.com

`score` runs a portfolio pass over a JSON list of tenant activity records
and prints the scored accounts and the filtered alert inbox as camelCase
JSON. `update` applies a lifecycle update to one alert in the database
store and prints the changed fields.
"""

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from pydantic import TypeAdapter, ValidationError

from app.config import settings
from app.core.sentry import init_sentry
from app.database import dispose_engine, init_db
from app.exceptions import ConfigurationError, CSException, ErrorCode
from app.schemas.customer_success.alert import (
    AlertNoteCreate,
    AlertOutcome,
    AlertSeverity,
    AlertStateUpdate,
    AlertStatus,
    OutcomeResult,
)
from app.schemas.customer_success.health_score import AccountHealth
from app.schemas.customer_success.metrics import TenantActivity
from app.services.customer_success.alert_store import get_alert_store
from app.services.customer_success.health_config import get_health_config, load_health_config
from app.services.customer_success.portfolio import PortfolioScorer, filter_alerts, summarize_alerts

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

_activities_adapter = TypeAdapter(list[TenantActivity])
_previous_adapter = TypeAdapter(dict[str, AccountHealth])


def _read_json(path: str):
    try:
        return json.loads(Path(path).read_text())
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Cannot read {path}: {e}", code=ErrorCode.CONFIG_FILE_UNREADABLE) from e


async def run_score(args: argparse.Namespace) -> dict:
    config = load_health_config(args.config) if args.config else get_health_config()
    activities = _activities_adapter.validate_python(_read_json(args.input))
    previous = _previous_adapter.validate_python(_read_json(args.previous)) if args.previous else None

    if settings.ALERT_STORE_BACKEND == "database":
        await init_db()
    store = get_alert_store()

    scorer = PortfolioScorer(store, config=config)
    result = await scorer.score_portfolio(activities, previous_scores=previous)

    alerts = filter_alerts(
        result.alerts,
        severity=AlertSeverity(args.severity) if args.severity else None,
        status=AlertStatus(args.status) if args.status else None,
        account_id=args.account,
        owner_id=args.owner,
        limit=args.limit,
    )

    return {
        "accounts": [snapshot.to_wire() for snapshot in result.accounts],
        "totalAccounts": result.total_accounts,
        "skippedAccounts": result.skipped_accounts,
        "inbox": summarize_alerts(alerts).to_wire(),
    }


def build_update(args: argparse.Namespace, now: datetime) -> AlertStateUpdate:
    """Translate CLI flags into a partial lifecycle update."""
    fields = {}
    status = AlertStatus(args.status) if args.status else None

    if status:
        fields["status"] = status
    if status == AlertStatus.ACKNOWLEDGED:
        fields["acknowledged_at"] = now
        fields["acknowledged_by"] = args.author
    if status == AlertStatus.SNOOZED:
        fields["snoozed_until"] = now + timedelta(days=args.snooze_days)
        fields["snooze_reason"] = args.snooze_reason
    if status == AlertStatus.RESOLVED:
        fields["resolved_at"] = now
        fields["resolved_by"] = args.author
        if args.outcome:
            fields["outcome"] = AlertOutcome(result=OutcomeResult(args.outcome), resolved_by=args.author)

    if args.assign_to:
        fields["assigned_to"] = args.assign_to
        fields["assigned_to_name"] = args.assign_to_name
    if args.note:
        fields["note"] = AlertNoteCreate(content=args.note, created_by=args.author or "unknown")

    return AlertStateUpdate(**fields)


async def run_update(args: argparse.Namespace) -> dict:
    await init_db()
    store = get_alert_store("database")
    result = await store.upsert(args.alert_id, build_update(args, datetime.now(timezone.utc)))
    return result.to_wire()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cs-health",
        description="Customer success health scoring and alerting",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    score = commands.add_parser("score", help="Score a portfolio and print its alerts")
    score.add_argument("input", help="JSON file with a list of tenant activity records")
    score.add_argument("--config", help="Health scoring config JSON (overrides HEALTH_CONFIG_FILE)")
    score.add_argument("--previous", help="JSON object of accountId -> previous AccountHealth")
    score.add_argument("--severity", choices=[s.value for s in AlertSeverity])
    score.add_argument("--status", choices=[s.value for s in AlertStatus])
    score.add_argument("--account", help="Only alerts for this account id")
    score.add_argument("--owner", help="Only alerts owned by this owner id")
    score.add_argument("--limit", type=int)

    update = commands.add_parser("update", help="Apply a lifecycle update to an alert")
    update.add_argument("alert_id")
    update.add_argument("--status", choices=[s.value for s in AlertStatus])
    update.add_argument("--author", help="Who is making the change")
    update.add_argument("--note", help="Append a note")
    update.add_argument("--snooze-days", type=int, default=1)
    update.add_argument("--snooze-reason")
    update.add_argument("--outcome", choices=[o.value for o in OutcomeResult])
    update.add_argument("--assign-to", help="New owner id")
    update.add_argument("--assign-to-name", help="New owner display name")

    return parser


async def _run(args: argparse.Namespace) -> dict:
    try:
        if args.command == "score":
            return await run_score(args)
        return await run_update(args)
    finally:
        await dispose_engine()


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    init_sentry()

    try:
        output = asyncio.run(_run(args))
    except CSException as e:
        logger.error("%s failed: %s", args.command, e.detail)
        print(json.dumps({"error": e.to_dict()}, indent=2), file=sys.stderr)
        return 1
    except ValidationError as e:
        logger.error("Invalid input: %s", e)
        return 1

    print(json.dumps(output, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
