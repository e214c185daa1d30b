"""CLI entrypoint for the project verifier phases."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError

from project_verifier.config import ActionContext
from project_verifier.console import Console
from project_verifier.phases import PHASES, build_services
from project_verifier.state_store import FileStateBackend


def _load_dotenv() -> None:
    """Load .env from cwd or its parent so local runs can mimic the Actions environment."""
    for dir_ in (Path.cwd(), Path.cwd().parent):
        env_file = dir_ / ".env"
        if env_file.is_file():
            load_dotenv(env_file)
            return


_load_dotenv()


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="project-verifier",
        description="Run the setup, verify, or cleanup phase of a project verification run.",
    )
    sub = p.add_subparsers(dest="command")

    descriptions = {
        "setup": "Resolve the project, clone the main code, and restore or clone the tests.",
        "verify": "Compile the project and run the verification tests.",
        "cleanup": "Upload diagnostics, update the release, and save the tests cache.",
    }
    for name, help_text in descriptions.items():
        phase_p = sub.add_parser(name, help=help_text)
        phase_p.add_argument(
            "--project",
            default=None,
            help="Project number to use when the version does not include one (1, 2, 3a, 3b, 4).",
        )
        phase_p.add_argument(
            "--ref",
            default=None,
            help="Git ref to verify (default: $GITHUB_REF).",
        )
        phase_p.add_argument(
            "--workspace",
            default=None,
            help="Directory the repositories are cloned into (default: $GITHUB_WORKSPACE or cwd).",
        )
        phase_p.add_argument(
            "--state-file",
            default=None,
            help="JSON file used to pass state between phases "
            "(default: <workspace>/.project_verifier/state.json).",
        )
        phase_p.add_argument(
            "--state-backend",
            choices=("file", "actions"),
            default=None,
            help="Where phase state is kept; 'actions' uses $GITHUB_STATE and only works "
            "for the pre/main/post steps of one action (default: file).",
        )
        phase_p.add_argument(
            "--verbose",
            "-v",
            action="store_true",
            help="Enable verbose (DEBUG) logging.",
        )
    return p


def _run_phase(name: str, args: argparse.Namespace) -> int:
    """Run one phase and return its exit code."""
    console = Console()
    try:
        context = ActionContext.from_env(
            project=args.project,
            ref=args.ref,
            workspace=Path(args.workspace).resolve() if args.workspace else None,
            state_file=Path(args.state_file) if args.state_file else None,
            state_backend=args.state_backend,
        )
        backend = context.build_state_backend()
    except (ValidationError, ValueError) as exc:
        console.annotate_error(f"Invalid configuration. {exc}")
        return 1

    console.mask(context.token)
    if name == "setup" and isinstance(backend, FileStateBackend):
        backend.clear()

    services = build_services(context, console=console, backend=backend)
    result = PHASES[name](services).run()
    return result.exit_code


def main(argv: list[str] | None = None) -> int:
    """Parse arguments and dispatch to the requested phase."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    level = logging.DEBUG if getattr(args, "verbose", False) else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
        datefmt="%H:%M:%S",
    )

    if args.command in PHASES:
        return _run_phase(args.command, args)

    parser.print_help()
    print(
        "\nTip: run 'project-verifier setup', then 'project-verifier verify',\n"
        "     then 'project-verifier cleanup' (one process per phase).",
        file=sys.stderr,
    )
    return 1


if __name__ == "__main__":
    sys.exit(main())
