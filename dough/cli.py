"""Command line entry point.

Usage:
    dough new <project> [--template default|code]
    dough present <project> [--mode term|html] [--scroll]
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from . import __version__
from .errors import DoughError, MissingSlide
from .presenter import FAREWELL, Presenter
from .project import TEMPLATES, create_project, ensure_style
from .runner import CodeRunner
from .terminal import Terminal


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dough", description="Present a directory of Markdown slides in the terminal.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="log debug output")
    commands = parser.add_subparsers(dest="command", required=True)

    new = commands.add_parser("new", help="create a new project")
    new.add_argument("project")
    new.add_argument("--template", default="default", choices=sorted(TEMPLATES))

    present = commands.add_parser("present", help="present a project")
    present.add_argument("project")
    present.add_argument("--mode", default="term", choices=("term", "html"))
    present.add_argument("--scroll", action="store_true", help="start in scroll mode")
    return parser


def present(project, scroll: bool = False) -> int:
    project_dir = Path(project)
    if not project_dir.is_dir():
        raise MissingSlide(f"project '{project_dir}' not found")
    ensure_style(project_dir)
    with Terminal() as terminal:
        runner = CodeRunner(terminal.write)
        presenter = Presenter(project_dir, terminal, runner, highlight_mode=not scroll)
        status = presenter.run()
    if presenter.finished:
        print(FAREWELL)
    return status


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        if args.command == "new":
            create_project(args.project, args.template)
            print(f"Created project '{args.project}'.")
            return 0
        if args.mode == "html":
            print("error: html output is not implemented yet", file=sys.stderr)
            return 2
        return present(args.project, args.scroll)
    except DoughError as e:
        print(f"error: {e}", file=sys.stderr)
        return e.exit_code
