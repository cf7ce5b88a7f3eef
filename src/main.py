# src/main.py — v1
"""CLI entry point: run, deploy, rollback, resume-decision, history commands.

Usage:
    argocd-deployer run                      # mode taken from plugin settings
    argocd-deployer deploy
    argocd-deployer rollback [--target REV]
    argocd-deployer resume-decision          # injected decision step
    argocd-deployer history <app>
"""

from __future__ import annotations

import argparse
import logging
import os
import sys

from argocd_deployer.config.settings import PASSWORD_ENV, Settings, load_settings
from argocd_deployer.core.exceptions import DeployerError
from argocd_deployer.logging.logger import setup_logging
from argocd_deployer.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    setup_logging(
        level="DEBUG" if args.verbose else "INFO",
        secrets=[os.environ.get(PASSWORD_ENV, "")],
    )

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        return args.func(args)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except DeployerError as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="argocd-deployer",
        description=f"argocd-deployer v{__version__} - Argo CD deploy and rollback step",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    p_run = subparsers.add_parser(
        "run", help="Deploy or roll back, as configured by MODE",
    )
    p_run.set_defaults(func=_cmd_run)

    p_deploy = subparsers.add_parser(
        "deploy", help="Sync the application and handle failures",
    )
    p_deploy.set_defaults(func=_cmd_deploy)

    p_rollback = subparsers.add_parser(
        "rollback", help="Roll the application back",
    )
    p_rollback.add_argument(
        "--target", default=None,
        help="History id or revision to roll back to (default: previous stable)",
    )
    p_rollback.set_defaults(func=_cmd_rollback)

    p_resume = subparsers.add_parser(
        "resume-decision", help="Execute the rollback decision of a paused deployment",
    )
    p_resume.set_defaults(func=_cmd_resume_decision)

    p_history = subparsers.add_parser(
        "history", help="Show the deployment history window of an application",
    )
    p_history.add_argument("app", help="Argo CD application name")
    p_history.add_argument(
        "--argocd-bin", default="argocd",
        help="Argo CD CLI executable (default: argocd)",
    )
    p_history.set_defaults(func=_cmd_history)

    return parser


def _cmd_run(args: argparse.Namespace) -> int:
    from argocd_deployer.api.facade import run_from_settings

    settings = _load_settings(args)
    return run_from_settings(settings)


def _cmd_deploy(args: argparse.Namespace) -> int:
    from argocd_deployer.api.facade import run_deploy

    settings = _load_settings(args, mode="deploy")
    settings.warn_on_soft_issues()
    result = run_deploy(settings)
    print(f"\nDeployment {result.state}:")
    print(f"  Application:  {result.application}")
    print(f"  Previous:     {result.previous_version}")
    print(f"  Current:      {result.current_version}")
    if result.reason:
        print(f"  Reason:       {result.reason}")
    return result.exit_code


def _cmd_rollback(args: argparse.Namespace) -> int:
    from argocd_deployer.api.facade import run_rollback

    overrides = {"mode": "rollback"}
    if args.target:
        overrides["target_revision"] = args.target
    settings = _load_settings(args, **overrides)
    settings.warn_on_soft_issues()
    result = run_rollback(settings)
    status = "succeeded" if result.success else "failed"
    print(f"\nRollback {status}:")
    print(f"  Application:  {result.application}")
    print(f"  From:         {result.from_revision}")
    print(f"  To:           {result.target_revision}")
    return result.exit_code


def _cmd_resume_decision(args: argparse.Namespace) -> int:
    from argocd_deployer.api.facade import resume_decision

    return resume_decision()


def _cmd_history(args: argparse.Namespace) -> int:
    from argocd_deployer.controller.argocd_cli import ArgoCDController

    entries = ArgoCDController(args.argocd_bin).history(args.app)
    if not entries:
        logger.error("No deployment history available for %s", args.app)
        return 1

    print(f"\nHistory for {args.app}:")
    for entry in entries:
        print(f"  {entry.history_id:>6}  {entry.deployed_at:<30}  {entry.revision}")
    return 0


def _load_settings(args: argparse.Namespace, **overrides: object) -> Settings:
    """Load plugin settings and reconfigure logging from them."""
    settings = load_settings(**overrides)
    level = "DEBUG" if args.verbose else settings.effective_log_level
    setup_logging(
        level=level,
        log_format=settings.log_format,
        log_file=str(settings.log_file) if settings.log_file else None,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
        secrets=[settings.argocd_password],
    )
    return settings


if __name__ == "__main__":
    sys.exit(main())
