"""CLI entry point for aumos-resource-governance.

Invoked as::

    resource-gov [OPTIONS] COMMAND [ARGS]...

or during development::

    python -m aumos_resource_governance.cli.main

Commands
--------
- version           Show version information
- resources list    List governed resource types
- resources fields  Show the fields and operators of a resource type
- filters examples  Show example filters for a resource type
- validate          Validate a policy file against the schema registry
- templates list    List built-in policy templates
- templates show    Print a template, optionally rendered with variables
- templates write   Write a rendered template to a file
- scan              Plan policies against an inventory without acting
- run               Execute policies against an inventory (dry run by default)
"""
from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

console = Console()
err_console = Console(stderr=True)

_DEFAULT_CONFIG = Path("governance.yaml")


# ---------------------------------------------------------------------------
# Root command group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="aumos-resource-governance")
@click.option(
    "--config",
    "-c",
    "config_path",
    default=str(_DEFAULT_CONFIG),
    show_default=True,
    type=click.Path(),
    help="Path to governance.yaml (defaults apply when it does not exist).",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, config_path: str, verbose: bool) -> None:
    """Resource Governance CLI — policies, filters, scans and runs."""
    from aumos_resource_governance.config import ConfigLoader

    loader = ConfigLoader()
    cfg_path = Path(config_path)
    try:
        config = loader.load(cfg_path) if cfg_path.exists() else loader.defaults()
    except ValueError as exc:
        err_console.print(f"[red]Invalid config:[/red] {exc}")
        sys.exit(1)

    level = logging.DEBUG if verbose else getattr(logging, config.logging.level)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    ctx.obj = config


# ---------------------------------------------------------------------------
# version
# ---------------------------------------------------------------------------


@cli.command(name="version")
def version_command() -> None:
    """Show detailed version information."""
    from aumos_resource_governance import __version__

    console.print(
        Panel(
            f"[bold]aumos-resource-governance[/bold]  v[cyan]{__version__}[/cyan]\n"
            "Policy-based governance for cloud resources.",
            title="Version",
            border_style="blue",
        )
    )


# ---------------------------------------------------------------------------
# resources group
# ---------------------------------------------------------------------------


@cli.group(name="resources")
def resources_group() -> None:
    """Resource schema registry commands."""


@resources_group.command(name="list")
def resources_list_command() -> None:
    """List the governed resource types."""
    from aumos_resource_governance.resources.registry import default_registry

    registry = default_registry()
    table = Table(title="Resource Types", box=box.SIMPLE)
    table.add_column("Type", style="cyan")
    table.add_column("Service", style="magenta")
    table.add_column("Aliases")
    table.add_column("Fields", justify="right")
    table.add_column("Actions")
    for name in registry.resource_types():
        definition = registry.lookup(name)
        if definition is None:
            continue
        table.add_row(
            name,
            definition.service,
            ", ".join(definition.aliases),
            str(len(definition.fields)),
            ", ".join(definition.actions),
        )
    console.print(table)


@resources_group.command(name="fields")
@click.argument("resource_type")
def resources_fields_command(resource_type: str) -> None:
    """Show the fields of RESOURCE_TYPE with their operators."""
    from aumos_resource_governance.resources.registry import default_registry

    definition = default_registry().lookup(resource_type)
    if definition is None:
        err_console.print(f"[red]Unknown resource type:[/red] {resource_type}")
        sys.exit(1)

    table = Table(title=f"{definition.name} fields", box=box.SIMPLE)
    table.add_column("Field", style="cyan", no_wrap=True)
    table.add_column("Type", style="magenta")
    table.add_column("Operators")
    table.add_column("Flags", style="dim")
    table.add_column("Description")
    for name in sorted(definition.fields):
        field_def = definition.fields[name]
        flags = [flag for flag, on in (("required", field_def.required), ("computed", field_def.computed)) if on]
        table.add_row(
            name,
            field_def.value_type.value,
            ", ".join(sorted(field_def.allowed_operators)),
            ", ".join(flags),
            field_def.description,
        )
    console.print(table)


# ---------------------------------------------------------------------------
# filters group
# ---------------------------------------------------------------------------


@cli.group(name="filters")
def filters_group() -> None:
    """Filter expression commands."""


@filters_group.command(name="examples")
@click.argument("resource_type")
def filters_examples_command(resource_type: str) -> None:
    """Show example filters for RESOURCE_TYPE."""
    from aumos_resource_governance.filters.expression import expression_to_dict
    from aumos_resource_governance.filters.prebuilt import example_filters
    from aumos_resource_governance.resources.registry import default_registry

    canonical = default_registry().canonical_type(resource_type)
    if canonical is None:
        err_console.print(f"[red]Unknown resource type:[/red] {resource_type}")
        sys.exit(1)

    examples = example_filters(canonical)
    if not examples:
        console.print(f"[yellow]No example filters for {canonical}.[/yellow]")
        return
    for name, expression in examples.items():
        console.print(
            Panel(
                json.dumps(expression_to_dict(expression), indent=2, default=str),
                title=name,
                border_style="blue",
            )
        )


# ---------------------------------------------------------------------------
# validate
# ---------------------------------------------------------------------------


@cli.command(name="validate")
@click.argument("policy_file", type=click.Path(exists=True))
def validate_command(policy_file: str) -> None:
    """Validate every policy in POLICY_FILE."""
    policies = _load_policies(Path(policy_file))
    invalid = _report_validation(policies)
    if invalid:
        sys.exit(1)
    console.print(f"[green]All {len(policies)} policies are valid.[/green]")


# ---------------------------------------------------------------------------
# templates group
# ---------------------------------------------------------------------------


@cli.group(name="templates")
def templates_group() -> None:
    """Built-in policy template commands."""


@templates_group.command(name="list")
def templates_list_command() -> None:
    """List the built-in policy templates."""
    from aumos_resource_governance.policies.templates import list_templates, template_variables

    table = Table(title="Policy Templates", box=box.SIMPLE)
    table.add_column("Template", style="cyan")
    table.add_column("Variables")
    for name in list_templates():
        variables = template_variables(name)
        table.add_row(name, ", ".join(f"{key}={value}" for key, value in variables.items()))
    console.print(table)


@templates_group.command(name="show")
@click.argument("name")
@click.option("--var", "var_pairs", multiple=True, help="Template variable as key=value; renders the template.")
def templates_show_command(name: str, var_pairs: tuple[str, ...]) -> None:
    """Print template NAME, rendered when variables are given."""
    from aumos_resource_governance.errors import ValidationError
    from aumos_resource_governance.policies.templates import get_template, render_template_text

    try:
        variables = _parse_vars(var_pairs)
        text = render_template_text(name, **variables) if variables else get_template(name)
    except (KeyError, ValidationError) as exc:
        err_console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)
    console.print(text, markup=False, highlight=False)


@templates_group.command(name="write")
@click.argument("name")
@click.argument("output", type=click.Path())
@click.option("--var", "var_pairs", multiple=True, help="Template variable as key=value.")
def templates_write_command(name: str, output: str, var_pairs: tuple[str, ...]) -> None:
    """Render template NAME with its defaults (and any --var) into OUTPUT."""
    from aumos_resource_governance.errors import ValidationError
    from aumos_resource_governance.policies.templates import template_variables, write_template

    try:
        variables = {**template_variables(name), **_parse_vars(var_pairs)}
        path = write_template(name, Path(output), **variables)
    except (KeyError, ValidationError) as exc:
        err_console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)
    console.print(f"[green]Wrote[/green] template [cyan]{name}[/cyan] to [bold]{path}[/bold]")


# ---------------------------------------------------------------------------
# scan / run
# ---------------------------------------------------------------------------


@cli.command(name="scan")
@click.argument("policy_file", type=click.Path(exists=True))
@click.option("--inventory", "-i", "inventory_file", type=click.Path(exists=True), help="Offline inventory file.")
@click.pass_obj
def scan_command(config: object, policy_file: str, inventory_file: str | None) -> None:
    """Show what the policies in POLICY_FILE would do, without acting."""
    from aumos_resource_governance.errors import GovernanceError

    engine, policies = _build_engine(config, Path(policy_file), inventory_file, live=False, assume_yes=False)

    failed = False
    for policy in policies:
        try:
            scan = engine.scan_policy(policy.name)
        except GovernanceError as exc:
            err_console.print(f"[red]Scan of '{policy.name}' failed:[/red] {exc}")
            failed = True
            continue

        console.print(
            Panel(
                f"Resource type: [cyan]{scan.resource_type}[/cyan]\n"
                f"Resources: {scan.resources_found} found, [bold]{scan.resources_matched}[/bold] matched\n"
                f"Estimated monthly savings: ${scan.estimated_monthly_savings:.2f}",
                title=f"Scan: {scan.policy_name}",
                border_style="blue",
            )
        )
        if scan.planned_actions:
            table = Table(box=box.SIMPLE)
            table.add_column("Action", style="cyan")
            table.add_column("Resources", justify="right")
            table.add_column("Destructive")
            table.add_column("Reversible")
            table.add_column("Supported")
            for planned in scan.planned_actions:
                table.add_row(
                    planned.action,
                    str(len(planned.resource_ids)),
                    "[red]yes[/red]" if planned.destructive else "no",
                    "yes" if planned.reversible else "[red]no[/red]",
                    "yes" if planned.supported else "[red]no[/red]",
                )
            console.print(table)
        for error in scan.errors:
            console.print(f"  [yellow]•[/yellow] {error}")

    sys.exit(1 if failed else 0)


@cli.command(name="run")
@click.argument("policy_file", type=click.Path(exists=True))
@click.option("--inventory", "-i", "inventory_file", type=click.Path(exists=True), help="Offline inventory file.")
@click.option("--live", is_flag=True, help="Apply actions instead of a dry run.")
@click.option("--yes", "-y", "assume_yes", is_flag=True, help="Confirm destructive actions without prompting.")
@click.pass_obj
def run_command(
    config: object,
    policy_file: str,
    inventory_file: str | None,
    live: bool,
    assume_yes: bool,
) -> None:
    """Execute the policies in POLICY_FILE (dry run unless --live)."""
    from aumos_resource_governance.errors import GovernanceError

    engine, policies = _build_engine(config, Path(policy_file), inventory_file, live=live, assume_yes=assume_yes)
    if not engine.config.dry_run:
        console.print("[bold red]LIVE MODE[/bold red] - actions will be applied to the inventory.")
    else:
        console.print("[cyan]DRY RUN[/cyan] - no changes will be made.")

    failed = False
    for policy in policies:
        if not policy.is_active:
            console.print(f"[dim]Skipping inactive policy '{policy.name}'.[/dim]")
            continue
        try:
            result = engine.execute_policy(policy.name)
        except GovernanceError as exc:
            err_console.print(f"[red]Policy '{policy.name}' failed:[/red] {exc}")
            failed = True
            continue

        summary = result.summary
        lines = [
            f"Resources: {result.resources_found} found, [bold]{result.resources_matched}[/bold] matched",
            f"Actions: {summary.total_actions} total, [green]{summary.successful_actions}[/green] successful, "
            f"[red]{summary.failed_actions}[/red] failed",
        ]
        if summary.resources_modified:
            lines.append(f"Resources modified: {summary.resources_modified}")
        if summary.skipped_actions:
            lines.append(f"[yellow]Skipped actions: {summary.skipped_actions}[/yellow]")
        if result.cost_impact.monthly_savings:
            lines.append(
                f"Savings: ${result.cost_impact.monthly_savings:.2f}/month, "
                f"${result.cost_impact.annual_savings:.2f}/year"
            )
        if summary.security_improvements:
            lines.append(f"Security improvements: {summary.security_improvements}")
        console.print(
            Panel(
                "\n".join(lines),
                title=f"Run: {result.policy_name}",
                border_style="green" if result.success else "red",
            )
        )
        if result.action_results:
            table = Table(box=box.SIMPLE)
            table.add_column("Action", style="cyan")
            table.add_column("Resource")
            table.add_column("Status")
            table.add_column("Message")
            for action_result in result.action_results:
                status = "[green]ok[/green]" if action_result.success else "[red]failed[/red]"
                table.add_row(action_result.action, action_result.resource_id, status, action_result.message)
            console.print(table)
        for error in result.errors:
            console.print(f"  [red]•[/red] {error}")
        failed = failed or not result.success

    sys.exit(1 if failed else 0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _parse_vars(pairs: tuple[str, ...]) -> dict[str, object]:
    variables: dict[str, object] = {}
    for pair in pairs:
        if "=" not in pair:
            raise click.BadParameter(f"expected key=value, got '{pair}'", param_hint="--var")
        key, _, value = pair.partition("=")
        variables[key.strip()] = value.strip()
    return variables


def _load_policies(path: Path) -> list:
    from aumos_resource_governance.errors import ValidationError
    from aumos_resource_governance.policies.parser import PolicyParser

    try:
        return PolicyParser().parse(path)
    except ValidationError as exc:
        err_console.print(f"[red]Invalid policy file:[/red] {exc}")
        sys.exit(1)


def _report_validation(policies: list) -> int:
    """Print validation results; return the number of invalid policies."""
    from aumos_resource_governance.policies.parser import validate_policy

    invalid = 0
    for policy in policies:
        problems = validate_policy(policy)
        if not problems:
            console.print(f"[green]VALID[/green]    {policy.name} ([cyan]{policy.resource_type}[/cyan])")
            continue
        invalid += 1
        console.print(f"[red]INVALID[/red]  {policy.name or '<unnamed>'} ({policy.resource_type or '?'})")
        for problem in problems:
            console.print(f"  [red]•[/red] {problem}")
    return invalid


def _build_engine(
    config: object,
    policy_file: Path,
    inventory_file: str | None,
    live: bool,
    assume_yes: bool,
) -> tuple:
    """Load policies and inventory and wire an offline engine.

    Exits with status 1 when any policy is invalid.
    """
    from aumos_resource_governance.config import GovernanceConfig
    from aumos_resource_governance.execution.confirm import ConsoleConfirmer, StaticConfirmer
    from aumos_resource_governance.execution.engine import ExecutorConfig, PolicyExecutionEngine
    from aumos_resource_governance.execution.offline import SimulatedActionExecutor, StaticResourceProvider
    from aumos_resource_governance.policies.store import InMemoryPolicyStore

    governance = config if isinstance(config, GovernanceConfig) else GovernanceConfig()
    policies = _load_policies(policy_file)
    if _report_validation(policies):
        err_console.print("[red]Refusing to continue with invalid policies.[/red]")
        sys.exit(1)

    inventory = inventory_file or governance.inventory
    if inventory is None:
        err_console.print("[red]No inventory given.[/red] Use --inventory or set 'inventory' in governance.yaml.")
        sys.exit(1)
    try:
        provider = StaticResourceProvider.from_file(Path(inventory))
    except (FileNotFoundError, ValueError) as exc:
        err_console.print(f"[red]Cannot load inventory:[/red] {exc}")
        sys.exit(1)

    executor_config = ExecutorConfig.from_config(governance)
    if live:
        from dataclasses import replace

        executor_config = replace(executor_config, dry_run=False)
    confirmer = StaticConfirmer(True) if assume_yes else ConsoleConfirmer(console)
    engine = PolicyExecutionEngine(
        InMemoryPolicyStore(policies),
        provider,
        SimulatedActionExecutor(provider=provider),
        config=executor_config,
        confirmer=confirmer,
    )
    return engine, policies


if __name__ == "__main__":
    cli()
