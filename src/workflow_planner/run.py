# run.py
# Entry point. Config and wiring only. No logic lives here.
#
#   workflow-planner generate  "每天早上八点检查土壤湿度，低于30%就浇水"
#   workflow-planner intent    "今天天气怎么样"
#   workflow-planner decompose "打开阀门放水至水位1.5米后关闭"
#   workflow-planner serve

import argparse
import logging
import sys

from rich.logging import RichHandler
from rich.markup import escape

from workflow_planner import display
from workflow_planner.config import load_settings
from workflow_planner.pipeline import DescriptionValidationError, WorkflowPipeline, validate_description


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=display.console, rich_tracebacks=True, show_path=False)],
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="workflow-planner", description="Natural language → workflow plan.")
    sub = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("generate", "classify, then decompose when the intent is confirmed"),
        ("intent", "classify only"),
        ("decompose", "decompose only, skipping the intent gate"),
    ):
        command = sub.add_parser(name, help=help_text)
        command.add_argument("description", nargs="+", help="free-text description")
        if name == "generate":
            command.add_argument("--request-id", default=None, help="correlation id to propagate")

    sub.add_parser("serve", help="run the HTTP API with uvicorn")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    settings = load_settings()
    _configure_logging(settings.log_level)

    if args.command == "serve":
        import uvicorn

        from workflow_planner.api import create_app

        uvicorn.run(create_app(WorkflowPipeline.from_settings(settings)), host=settings.api_host, port=settings.api_port)
        return 0

    try:
        description = validate_description(" ".join(args.description))
    except DescriptionValidationError as exc:
        display.console.print(f"[red]{escape(str(exc))}[/red]")
        return 2

    pipeline = WorkflowPipeline.from_settings(settings)
    display.banner(settings.model, settings.base_url)
    display.request_received(args.command, description)

    if args.command == "generate":
        envelope = pipeline.process(description, args.request_id)
    elif args.command == "intent":
        envelope = pipeline.classify_only(description)
    else:
        envelope = pipeline.decompose_only(description)

    display.envelope(envelope)
    return 0 if envelope.ok else 1


if __name__ == "__main__":
    sys.exit(main())
