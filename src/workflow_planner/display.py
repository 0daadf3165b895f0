# display.py
# All terminal output for the workflow planner CLI.
#
# This module owns presentation entirely. The pipeline never formats
# strings for a terminal; run.py hands finished envelopes to the named
# functions here. Swap this file to change the entire UI.
#
# Colour language:
#   cyan     requests and routing
#   blue     plan structure (variables / steps)
#   yellow   negative or low-confidence verdicts
#   green    success / confirmed intent
#   red      error envelopes

import json

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from workflow_planner.models import IntentVerdict, Plan, ResponseEnvelope

console = Console()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _label(tag: str, color: str) -> Text:
    t = Text()
    t.append(f" {tag} ", style=f"bold white on {color}")
    return t


def _mono(value: str, max_len: int = 120) -> str:
    """Truncate and escape model text for use in markup."""
    if len(value) > max_len:
        return escape(value[:max_len]) + "…"
    return escape(value)


# ---------------------------------------------------------------------------
# Request entry
# ---------------------------------------------------------------------------


def banner(model: str, base_url: str) -> None:
    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]Workflow Planner[/bold cyan]\n"
            "[dim]Intent gate → task decomposition[/dim]\n\n"
            f"[dim]Model    :[/dim] [white]{escape(model)}[/white]\n"
            f"[dim]Endpoint :[/dim] [white]{escape(base_url)}[/white]",
            border_style="cyan",
            padding=(1, 4),
        )
    )


def request_received(mode: str, description: str) -> None:
    console.print()
    console.print(Rule(f"[cyan]{escape(mode.upper())}[/cyan]", style="cyan"))
    console.print(
        Panel(
            f"[white]{escape(description)}[/white]",
            title=_label("DESCRIPTION", "cyan"),
            border_style="cyan",
            padding=(0, 2),
        )
    )


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


def verdict(result: IntentVerdict) -> None:
    color = "green" if result.is_intent else "yellow"
    headline = "Workflow intent confirmed." if result.is_intent else "Not a workflow intent."
    console.print()
    console.print(
        Panel(
            f"[bold {color}]{headline}[/bold {color}]\n\n"
            f"[dim]Confidence :[/dim] [white]{result.confidence:.2f}[/white]\n"
            f"[dim]Category   :[/dim] [white]{escape(result.category)}[/white]\n"
            f"[dim]Rationale  :[/dim] [white]{escape(result.rationale)}[/white]",
            title=_label("INTENT VERDICT", color),
            subtitle=f"[dim]{escape(result.correlation_id)}[/dim]",
            border_style=color,
            padding=(0, 2),
        )
    )


def plan(result: Plan) -> None:
    console.print()
    console.print(
        Panel(
            f"[white]{escape(result.plan_summary)}[/white]\n\n"
            f"[dim]Duration   :[/dim] [white]{result.estimated_duration_seconds}s[/white]   "
            f"[dim]Complexity :[/dim] [white]{result.complexity_level}[/white]",
            title=_label("PLAN", "green"),
            subtitle=f"[dim]{escape(result.correlation_id)}[/dim]",
            border_style="green",
            padding=(0, 2),
        )
    )

    variables = Table(box=box.SIMPLE_HEAVY, border_style="blue", header_style="bold blue", padding=(0, 1))
    variables.add_column("Name", style="bold white")
    variables.add_column("Type", width=10)
    variables.add_column("Default", style="dim white")
    variables.add_column("Req", justify="center", width=5)
    variables.add_column("Description", style="white")
    for variable in result.variables:
        variables.add_row(
            escape(variable.name),
            escape(variable.type),
            _mono(variable.default_value, 20),
            "[green]✓[/green]" if variable.required else "[dim]–[/dim]",
            _mono(variable.description, 60),
        )
    console.print(Panel(variables, title="[blue]VARIABLES[/blue]", border_style="blue", padding=(0, 1)))

    steps = Table(box=box.SIMPLE_HEAVY, border_style="blue", header_style="bold blue", padding=(0, 1))
    steps.add_column("#", justify="center", width=4)
    steps.add_column("Name", style="bold white")
    steps.add_column("Type", width=10)
    steps.add_column("Action / Condition", style="white")
    steps.add_column("After", justify="center", width=8)
    steps.add_column("Params", style="dim white")
    for step in result.steps:
        detail = escape(step.action)
        if step.condition:
            detail += f"\n[dim]if {escape(step.condition)}[/dim]"
        if step.is_loop and step.loop_condition:
            detail += f"\n[dim]while {escape(step.loop_condition)}[/dim]"
        steps.add_row(
            str(step.step_number),
            escape(step.name),
            escape(step.step_type),
            detail,
            ",".join(str(n) for n in step.prerequisites) or "–",
            _mono(json.dumps(step.parameters, ensure_ascii=False), 40),
        )
    console.print(Panel(steps, title="[blue]STEPS[/blue]", border_style="blue", padding=(0, 1)))

    console.print(f"  [dim]Logic:[/dim] [white]{escape(result.logic_description)}[/white]")
    console.print(f"  [dim]Order:[/dim] [white]{escape(result.execution_order)}[/white]")


def error(envelope: ResponseEnvelope) -> None:
    console.print()
    console.print(
        Panel(
            f"[bold white]{escape(envelope.message)}[/bold white]",
            title=_label(f"ERROR {envelope.code}", "red"),
            subtitle=f"[dim]{escape(envelope.correlation_id or '')}[/dim]",
            border_style="red",
            padding=(0, 2),
        )
    )
    console.print()


def envelope(result: ResponseEnvelope) -> None:
    """Render any envelope the pipeline returns."""
    if not result.ok:
        error(result)
    elif isinstance(result.data, IntentVerdict):
        verdict(result.data)
    elif isinstance(result.data, Plan):
        plan(result.data)
    else:
        console.print()
        console.print(
            Panel(f"[white]{escape(str(result.data))}[/white]", title=_label("RESULT", "green"), border_style="green")
        )
    console.print()
