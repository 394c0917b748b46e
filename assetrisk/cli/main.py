"""Command-line interface for assetrisk - building portfolio risk engine."""
import argparse
import asyncio
import json  # pylint: disable=import-self
import logging
import sys
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import yaml

from assetrisk.config.settings import EngineConfig, load_engine_config
from assetrisk.core.assess import assess_component
from assetrisk.core.composite import WeightedCompositeRecalculator
from assetrisk.core.lifecycle import CriteriaLifecycleManager
from assetrisk.core.portfolio import aggregate_assessments
from assetrisk.core.risk import get_risk_matrix
from assetrisk.models.criteria import RemovalScope
from assetrisk.models.factors import CofInputs, PofInputs
from assetrisk.models.risk import AssessmentStatus, RiskAssessment, RiskLevel
from assetrisk.output.json import render_json
from assetrisk.store import get_store, list_supported_stores

logger = logging.getLogger(__name__)

COF_SECTIONS = {"safety", "operational", "financial", "environmental", "reputational"}

LEVEL_ORDER = [level.value for level in RiskLevel]

RECENT_WINDOW_DAYS = 30


def load_data_file(path: str) -> Any:
    """Load a JSON or YAML file (YAML is a superset, so both parse)."""
    with open(path, 'r', encoding='utf-8') as f:
        if path.endswith('.json'):
            return json.load(f)
        return yaml.safe_load(f)


def parse_cof_inputs(data: Optional[Dict[str, Any]]) -> CofInputs:
    """Accept either nested dimension sections or flat ``safety_impact`` style keys."""
    data = data or {}
    if COF_SECTIONS & set(data.keys()):
        return CofInputs(**data)
    return CofInputs.from_flat(data)


def _configure_logging(args, config: EngineConfig) -> None:
    level = logging.DEBUG if getattr(args, 'verbose', False) else config.log_level
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def run_assess(args, config: EngineConfig) -> int:
    data = load_data_file(args.inputs)
    if not isinstance(data, dict):
        raise ValueError(f"Inputs file must contain a mapping with 'pof' and 'cof': {args.inputs}")

    assessment = assess_component(
        PofInputs(**(data.get('pof') or {})),
        parse_cof_inputs(data.get('cof')),
        asset_id=args.asset_id if args.asset_id is not None else data.get('asset_id'),
        assessed_by=args.actor,
        curves=config.curve_table(),
    )
    print(render_json(assessment))
    return _exit_code(args.fail_on, assessment.risk_level)


def _exit_code(fail_on: Optional[str], level: RiskLevel) -> int:
    if not fail_on:
        return 0
    if LEVEL_ORDER.index(level.value) >= LEVEL_ORDER.index(fail_on):
        return 1
    return 0


def run_matrix(args, config: EngineConfig) -> int:  # pylint: disable=unused-argument
    print(render_json(get_risk_matrix()))
    return 0


def run_portfolio(args, config: EngineConfig) -> int:  # pylint: disable=unused-argument
    data = load_data_file(args.assessments)
    if isinstance(data, dict):
        data = [data]
    assessments: List[RiskAssessment] = [RiskAssessment(**a) for a in data or []]
    status = None if args.status == 'all' else AssessmentStatus(args.status)
    print(render_json(aggregate_assessments(assessments, status=status)))
    return 0


async def run_criteria(args, config: EngineConfig) -> int:
    """Apply one lifecycle transition to a state file and write it back."""
    store = get_store(args.store, load_data_file(args.state) or {})
    manager = CriteriaLifecycleManager(
        criteria_store=store,
        score_store=store,
        audit_sink=store,
        recalculator=WeightedCompositeRecalculator(store),
        config=config,
    )

    if args.action == 'remove':
        result = await manager.remove_criterion(
            args.id, RemovalScope(args.scope), args.actor, args.reason
        )
    elif args.action == 'disable':
        result = await manager.disable_criterion(args.id, args.actor, args.reason)
    elif args.action == 'delete':
        result = await manager.delete_criterion(args.id, args.actor, args.confirm or "", args.reason)
    else:
        result = await manager.enable_criterion(args.id, args.actor, args.reason)

    with open(args.state, 'w', encoding='utf-8') as f:
        json.dump(store.to_dict(), f, indent=2)

    print(render_json(result))
    if result.recalculation and not result.recalculation.succeeded:
        print(
            f"Warning: {len(result.recalculation.failures)} asset(s) failed recalculation.",
            file=sys.stderr
        )
        return 2
    return 0


def run_audit(args, config: EngineConfig) -> int:  # pylint: disable=unused-argument
    """Print criteria audit history, recent entries or stats from a state file."""
    store = get_store(args.store, load_data_file(args.state) or {})
    if args.stats:
        since = datetime.now(timezone.utc) - timedelta(days=RECENT_WINDOW_DAYS)
        print(render_json(store.stats(since=since)))
    elif args.id is not None:
        print(render_json(store.history_for(args.id)))
    else:
        print(render_json(store.recent(args.limit)))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="assetrisk - building portfolio risk and prioritization engine",
        epilog="Examples:\n"
               "  assetrisk assess --inputs boiler.yaml --fail-on high\n"
               "  assetrisk matrix\n"
               "  assetrisk portfolio --assessments assessments.json\n"
               "  assetrisk criteria disable --state state.json --id 3 --actor admin\n"
               "  assetrisk audit --state state.json --stats",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument(
        "--config",
        help="Path to engine config file (default: ~/.assetrisk/config.yaml)"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command")

    assess_parser = subparsers.add_parser(
        "assess",
        help="Compute PoF, CoF and risk level for one component",
        description="Assess one component from a JSON/YAML file with 'pof' and 'cof' sections"
    )
    assess_parser.add_argument("--inputs", required=True, help="JSON or YAML factor inputs file")
    assess_parser.add_argument("--asset-id", type=int, help="Asset id recorded on the assessment")
    assess_parser.add_argument("--actor", help="Assessor recorded on the assessment")
    assess_parser.add_argument(
        "--fail-on", choices=LEVEL_ORDER,
        help="Exit with code 1 if the risk level meets or exceeds this level"
    )

    subparsers.add_parser("matrix", help="Print the 5x5 risk matrix")

    portfolio_parser = subparsers.add_parser(
        "portfolio", help="Aggregate stored assessments into portfolio metrics"
    )
    portfolio_parser.add_argument(
        "--assessments", required=True, help="JSON or YAML list of risk assessments"
    )
    portfolio_parser.add_argument(
        "--status", choices=[s.value for s in AssessmentStatus] + ['all'], default='approved',
        help="Only aggregate assessments in this status (default: approved)"
    )

    criteria_parser = subparsers.add_parser(
        "criteria", help="Remove, disable, delete or enable a prioritization criterion"
    )
    criteria_parser.add_argument("action", choices=["remove", "disable", "delete", "enable"])
    criteria_parser.add_argument("--state", required=True, help="JSON state file, updated in place")
    criteria_parser.add_argument("--id", type=int, required=True, help="Criterion id")
    criteria_parser.add_argument("--actor", required=True, help="User performing the change")
    criteria_parser.add_argument("--reason", help="Reason recorded in the audit log")
    criteria_parser.add_argument(
        "--scope", choices=[s.value for s in RemovalScope], default=RemovalScope.PORTFOLIO.value,
        help="Removal scope for 'remove' (default: portfolio)"
    )
    criteria_parser.add_argument("--confirm", help="Type DELETE to confirm deletion")
    criteria_parser.add_argument(
        "--store", choices=list_supported_stores(), default='memory',
        help="Storage backend the state file is loaded into (default: memory)"
    )

    audit_parser = subparsers.add_parser(
        "audit", help="Show the criteria audit trail from a state file"
    )
    audit_parser.add_argument("--state", required=True, help="JSON state file")
    audit_parser.add_argument("--id", type=int, help="Only entries for this criterion")
    audit_parser.add_argument(
        "--limit", type=int, default=100, help="Most recent entries to show (default: 100)"
    )
    audit_parser.add_argument(
        "--stats", action="store_true",
        help=f"Show per-action counts and changes in the last {RECENT_WINDOW_DAYS} days"
    )
    audit_parser.add_argument(
        "--store", choices=list_supported_stores(), default='memory',
        help="Storage backend the state file is loaded into (default: memory)"
    )

    return parser


def main(argv: Optional[List[str]] = None):
    """Parse command line arguments and execute appropriate command."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        config = load_engine_config(args.config)
        _configure_logging(args, config)

        if args.command == "assess":
            code = run_assess(args, config)
        elif args.command == "matrix":
            code = run_matrix(args, config)
        elif args.command == "portfolio":
            code = run_portfolio(args, config)
        elif args.command == "audit":
            code = run_audit(args, config)
        else:
            code = asyncio.run(run_criteria(args, config))
    except Exception as e:  # pylint: disable=broad-except
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    sys.exit(code)

if __name__ == "__main__":
    main()
