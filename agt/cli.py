"""agt CLI: install, update, search and publish agents from the registry."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click
import httpx
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from agt import __version__
from agt.config import ENVIRONMENTS, Config, ConfigStore
from agt.errors import AgtError
from agt.log import configure_logging
from agt.models.agent import TARGET_LABELS, TARGETS

console = Console()


class AppContext:
    """Per-invocation state shared by all commands.

    The config is loaded on first use so ``agt config reset`` still works
    when the file on disk is broken.
    """

    def __init__(
        self,
        config_path: str | None = None,
        registry_url: str | None = None,
        verbose: bool = False,
        transport: httpx.BaseTransport | None = None,
    ):
        self.config_path = config_path
        self.registry_url = registry_url
        self.verbose = verbose
        self.transport = transport
        self._config: Config | None = None

    @property
    def store(self) -> ConfigStore:
        return ConfigStore(self.config_path)

    @property
    def config(self) -> Config:
        if self._config is None:
            config = self.store.load()
            if not self.verbose:
                configure_logging(config.logging.level)
            self._config = config
        return self._config

    def registry(self):
        from agt.registry.client import RegistryClient

        return RegistryClient.from_config(
            self.config, transport=self.transport, base_url=self.registry_url
        )

    def reconciler(self):
        from agt.installer import InstalledStateStore, Reconciler

        return Reconciler(
            registry=self.registry(),
            store=InstalledStateStore(self.config.install.manifest_path),
            default_target=self.config.install.target,
        )


class AgtGroup(click.Group):
    """Command group that reports agt errors in red and exits 1."""

    def invoke(self, ctx: click.Context):
        try:
            return super().invoke(ctx)
        except (AgtError, OSError) as e:
            console.print(f"[red]Error:[/] {escape(str(e))}")
            issues = getattr(e, "issues", None) or []
            for issue in issues:
                console.print(f"  [red]-[/] {escape(issue)}")
            ctx.exit(1)


target_option = click.option(
    "--target",
    "-t",
    type=click.Choice(TARGETS),
    default=None,
    help="Target CLI (default: install.target from the config)",
)


def _print_item(item) -> None:
    if item.ok:
        console.print(f"  [green]✓[/] {escape(item.message)}")
    else:
        console.print(f"  [red]✗[/] {escape(item.ref)}: {escape(item.message)}")


def _print_summary(result) -> None:
    if len(result.items) > 1:
        console.print(
            f"\n{len(result.succeeded)} succeeded, "
            f"{len(result.failed)} failed"
        )


@click.group(cls=AgtGroup)
@click.version_option(version=__version__)
@click.option(
    "--config",
    "config_path",
    envvar="AGT_CONFIG",
    default=None,
    help="Config file (default: ~/.agents-cli/config.yaml)",
)
@click.option("--registry", "registry_url", default=None, help="Override the registry URL")
@click.option("--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, config_path: str | None, registry_url: str | None, verbose: bool):
    """agt: package manager for AI coding agents.

    Install, update and publish agent definitions for Claude Code,
    Codex and Copilot from the AGTHub registry.
    """
    app = ctx.ensure_object(AppContext)
    app.config_path = config_path or app.config_path
    app.registry_url = registry_url or app.registry_url
    app.verbose = verbose
    configure_logging("debug" if verbose else "info")


# ── Install ──────────────────────────────────────────────────────────


@main.command()
@click.argument("refs", nargs=-1, required=True)
@target_option
@click.option("--force", "-f", is_flag=True, help="Reinstall even if already installed")
@click.option("--dry-run", is_flag=True, help="Show what would be installed")
@click.option("--version", "version", default=None, help="Install a specific version")
@click.pass_obj
def install(app: AppContext, refs: tuple, target: str | None, force: bool, dry_run: bool, version: str | None):
    """Install one or more agents.

    REFS are agent references: name, author/name or author/name@version.
    """
    from agt.installer import InstallOptions

    reconciler = app.reconciler()
    options = InstallOptions(version=version, target=target, force=force, dry_run=dry_run)

    result = reconciler.install_many(refs, options, on_item=_print_item)
    _print_summary(result)
    sys.exit(result.exit_code)


# ── Uninstall ────────────────────────────────────────────────────────


@main.command()
@click.argument("refs", nargs=-1, required=True)
@target_option
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.pass_obj
def uninstall(app: AppContext, refs: tuple, target: str | None, yes: bool):
    """Uninstall one or more agents."""
    reconciler = app.reconciler()

    if not yes:
        click.confirm(f"Uninstall {', '.join(refs)}?", default=False, abort=True)

    result = reconciler.uninstall_many(refs, target, on_item=_print_item)
    _print_summary(result)
    sys.exit(result.exit_code)


# ── Update ───────────────────────────────────────────────────────────


def _updates_table(plan) -> Table:
    table = Table(title=f"Updates available ({len(plan.candidates)})")
    table.add_column("Agent", style="cyan")
    table.add_column("Target")
    table.add_column("Installed", style="dim")
    table.add_column("Latest", style="green")
    for candidate in plan.candidates:
        record = candidate.record
        table.add_row(
            record.id,
            TARGET_LABELS.get(record.target, record.target),
            record.version,
            candidate.latest_version,
        )
    return table


@main.command()
@click.argument("refs", nargs=-1)
@click.option("--check", is_flag=True, help="Only check for updates")
@click.option("--dry-run", is_flag=True, help="Show what would be updated")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.pass_obj
def update(app: AppContext, refs: tuple, check: bool, dry_run: bool, yes: bool):
    """Update installed agents to their latest versions.

    With no REFS, every installed agent is checked.
    """
    reconciler = app.reconciler()
    plan = reconciler.check_updates(list(refs) or None)

    for item in plan.not_installed:
        _print_item(item)

    if not plan.candidates:
        if plan.not_installed and not plan.current:
            sys.exit(1)
        console.print("[green]All agents are up to date.[/]")
        return

    console.print(_updates_table(plan))
    if check or dry_run:
        return

    if not yes and not click.confirm(f"Update {len(plan.candidates)} agent(s)?", default=True):
        console.print("[yellow]Update cancelled.[/]")
        return

    def on_item(item) -> None:
        if not any(item is skipped for skipped in plan.not_installed):
            _print_item(item)

    result = reconciler.apply_updates(plan, on_item=on_item)
    _print_summary(result)
    sys.exit(result.exit_code)


# ── Search / List ────────────────────────────────────────────────────


def _agents_table(title: str, agents) -> Table:
    table = Table(title=title)
    table.add_column("Agent", style="cyan")
    table.add_column("Version")
    table.add_column("Category", style="dim")
    table.add_column("Downloads", justify="right")
    table.add_column("Description")
    for agent in agents:
        table.add_row(
            agent.key,
            agent.version,
            agent.category,
            str(agent.downloads),
            agent.display_description[:60],
        )
    return table


@main.command()
@click.argument("query", required=False, default="")
@click.option("--category", "-c", default="", help="Filter by category")
@click.option("--tag", "-t", default="", help="Filter by tag")
@click.option("--author", "-a", default="", help="Filter by author")
@click.option("--target", "target", type=click.Choice(TARGETS), default=None, help="Only agents compatible with a target")
@click.option("--language", default="", help="Only agents available in a language (en, zh, ja, vi)")
@click.option(
    "--sort",
    "-s",
    "sort_by",
    type=click.Choice(["downloads", "rating", "name", "updated"]),
    default="downloads",
)
@click.option("--limit", "-l", default=20, show_default=True, help="Maximum results (0 for all)")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@click.pass_obj
def search(
    app: AppContext,
    query: str,
    category: str,
    tag: str,
    author: str,
    target: str | None,
    language: str,
    sort_by: str,
    limit: int,
    as_json: bool,
):
    """Search the registry for agents."""
    from agt.registry.models import SearchQuery, SortField

    with app.registry() as registry:
        result = registry.search(
            SearchQuery(
                text=query,
                category=category,
                tag=tag,
                author=author,
                target=target or "",
                language=language,
                sort_by=SortField(sort_by),
                limit=limit,
            )
        )

    if as_json:
        click.echo(json.dumps([a.to_dict() for a in result.agents], indent=2, ensure_ascii=False))
        return

    if not result.agents:
        console.print("[yellow]No matching agents found.[/]")
        return

    console.print(_agents_table(f"Search results ({result.total_count} found)", result.agents))
    if result.truncated:
        console.print(f"[dim]Showing {len(result.agents)} of {result.total_count}. Use --limit to see more.[/]")


@main.command(name="list")
@click.option("--installed", is_flag=True, help="List installed agents")
@click.option("--updates", is_flag=True, help="List installed agents with updates available")
@click.option("--category", "-c", default="", help="List registry agents in a category")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@click.pass_obj
def list_agents(app: AppContext, installed: bool, updates: bool, category: str, as_json: bool):
    """List registry agents, installed agents or available updates."""
    if installed:
        _list_installed(app, as_json)
    elif updates:
        _list_updates(app, as_json)
    else:
        with app.registry() as registry:
            agents = registry.category_agents(category) if category else registry.all_agents()
        if as_json:
            click.echo(json.dumps([a.to_dict() for a in agents], indent=2, ensure_ascii=False))
            return
        if not agents:
            console.print("[yellow]No agents found.[/]")
            return
        title = f"{category} ({len(agents)} agents)" if category else f"Registry ({len(agents)} agents)"
        console.print(_agents_table(title, agents))


def _list_installed(app: AppContext, as_json: bool) -> None:
    records = app.reconciler().installed()
    if as_json:
        click.echo(json.dumps([r.to_dict() for r in records], indent=2))
        return
    if not records:
        console.print("[yellow]No agents installed.[/]")
        return

    table = Table(title=f"Installed agents ({len(records)})")
    table.add_column("Agent", style="cyan")
    table.add_column("Version")
    table.add_column("Target")
    table.add_column("Installed", style="dim")
    for record in records:
        table.add_row(
            record.id,
            record.version,
            TARGET_LABELS.get(record.target, record.target),
            record.installed_at[:10],
        )
    console.print(table)


def _list_updates(app: AppContext, as_json: bool) -> None:
    plan = app.reconciler().check_updates()
    if as_json:
        click.echo(json.dumps(
            [{**c.record.to_dict(), "latest": c.latest_version} for c in plan.candidates],
            indent=2,
        ))
        return
    if not plan.candidates:
        console.print("[green]All agents are up to date.[/]")
        return
    console.print(_updates_table(plan))


# ── Publish ──────────────────────────────────────────────────────────


@main.command()
@click.argument("path", required=False, default=".")
@click.option("--update", is_flag=True, help="Update an existing agent")
@click.option("--validate", "validate_only", is_flag=True, help="Validate only, do not publish")
@click.option("--staging-dir", default=None, help="Local staging registry used without a login token")
@click.pass_obj
def publish(app: AppContext, path: str, update: bool, validate_only: bool, staging_dir: str | None):
    """Publish an agent file, or every agent file in a directory.

    Without a login token, agents are staged into a local registry
    directory that can be submitted as a pull request.
    """
    from agt.errors import ValidationError
    from agt.publish.pipeline import PublishPipeline
    from agt.registry.local_registry import DEFAULT_STAGING_DIR
    from agt.utils.file_scanner import scan_agent_files

    config = app.config
    pipeline = PublishPipeline(
        registry=app.registry(),
        token=config.token,
        default_author=config.user_name,
        staging_dir=staging_dir or DEFAULT_STAGING_DIR,
    )
    target = Path(path)

    if validate_only:
        files = scan_agent_files(target)
        if not files:
            console.print(f"[yellow]No agent files found in {escape(path)}[/]")
            sys.exit(1)
        invalid = 0
        for file in files:
            try:
                prepared = pipeline.prepare(file)
            except ValidationError as e:
                invalid += 1
                console.print(f"  [red]✗[/] {escape(str(file))}")
                for issue in e.issues:
                    console.print(f"      {escape(issue)}")
            else:
                console.print(f"  [green]✓[/] {escape(str(file))}")
                for warning in prepared.warnings:
                    console.print(f"      [yellow]{escape(warning)}[/]")
        console.print(f"\n{len(files) - invalid} valid, {invalid} invalid")
        sys.exit(1 if invalid else 0)

    if not pipeline.remote:
        console.print(
            f"[yellow]Not logged in; staging into {escape(str(pipeline.staging.registry_dir))}. "
            "Run 'agt login' to publish to AGTHub.[/]"
        )

    if target.is_file():
        outcome = pipeline.publish_file(target, update=update)
        console.print(f"[green]✓[/] {escape(outcome.description)}")
        return

    def on_invalid(error: ValidationError) -> None:
        console.print(f"  [red]✗[/] {escape(error.source)}")
        for issue in error.issues:
            console.print(f"      {escape(issue)}")

    def on_failed(file: Path, error: AgtError) -> None:
        console.print(f"  [red]✗[/] {escape(str(file))}: {escape(str(error))}")

    report = pipeline.publish_directory(
        target,
        update=update,
        on_invalid=on_invalid,
        on_published=lambda outcome: console.print(f"  [green]✓[/] {escape(outcome.description)}"),
        on_failed=on_failed,
    )
    if not report.success_count and not report.failure_count:
        console.print(f"[yellow]No agent files found in {escape(path)}[/]")
        return
    console.print(f"\n{report.success_count} published, {report.failure_count} failed")
    sys.exit(report.exit_code)


# ── Login ────────────────────────────────────────────────────────────


@main.command()
@click.option("--email", default=None, help="Account email")
@click.option("--code", default=None, help="Verification code (prompted if omitted)")
@click.pass_obj
def login(app: AppContext, email: str | None, code: str | None):
    """Log in to AGTHub with an emailed verification code."""
    from agt.auth.login import redeem_code, send_code

    config = app.config
    email = email or click.prompt("Email")

    if not code:
        send_code(config.api_url, email, transport=app.transport)
        console.print(f"Verification code sent to [cyan]{escape(email)}[/]")
        code = click.prompt("Verification code")

    result = redeem_code(config.api_url, email, code, transport=app.transport)
    config.token = result.token
    config.email = result.email
    config.user_name = result.name
    app.store.save(config)

    who = result.name or result.email
    console.print(f"[green]Logged in as {escape(who)}[/]")
    if result.expires_at:
        console.print(f"[dim]Token expires {escape(result.expires_at)}[/]")


# ── Init ─────────────────────────────────────────────────────────────


@main.command()
@click.argument("filename", required=False)
@click.option("--name", default=None, help="Agent name (English)")
@click.option("--description", default=None, help="Short description (English)")
@click.option("--category", default=None, help="Registry category")
@click.option("--force", "-f", is_flag=True, help="Overwrite an existing file")
def init(filename: str | None, name: str | None, description: str | None, category: str | None, force: bool):
    """Create a new agent file from a template."""
    from agt.publish.template import render_agent_template, slugify
    from agt.publish.validator import CATEGORIES

    name = name or click.prompt("Agent name")
    description = description or click.prompt("Description")
    category = category or click.prompt(
        "Category", type=click.Choice(CATEGORIES), default="code-quality", show_choices=False
    )
    if category not in CATEGORIES:
        raise click.BadParameter(f"must be one of: {', '.join(CATEGORIES)}", param_hint="--category")

    path = Path(filename or f"{slugify(name)}.md")
    if path.exists() and not force:
        click.confirm(f"{path} already exists. Overwrite?", default=False, abort=True)

    path.write_text(render_agent_template(name, description, category), encoding="utf-8")
    console.print(f"[green]Created[/] {escape(str(path))}")
    console.print("[dim]Edit the file, then run 'agt publish --validate' to check it.[/]")


# ── Config ───────────────────────────────────────────────────────────


@main.group(name="config", cls=AgtGroup)
def config_group():
    """Show or change the CLI configuration."""


@config_group.command(name="show")
@click.pass_obj
def config_show(app: AppContext):
    """Print the current configuration."""
    import yaml

    config = app.config
    data = config.to_dict()
    if data.get("token"):
        data["token"] = data["token"][:8] + "…"

    console.print(f"[dim]{escape(str(app.store.path))}[/]")
    click.echo(yaml.safe_dump(data, sort_keys=False, allow_unicode=True))
    env = config.environment
    console.print(f"Environment: [cyan]{env or 'custom'}[/]")


@config_group.command(name="set-url")
@click.argument("url")
@click.pass_obj
def config_set_url(app: AppContext, url: str):
    """Set the AGTHub API URL."""
    if not url.startswith(("http://", "https://")):
        raise click.BadParameter("must start with http:// or https://", param_hint="URL")
    config = app.config
    config.api_url = url.rstrip("/")
    app.store.save(config)
    console.print(f"[green]API URL set to[/] {escape(config.api_url)}")


@config_group.command(name="use-env")
@click.argument("environment", type=click.Choice(sorted(ENVIRONMENTS)))
@click.pass_obj
def config_use_env(app: AppContext, environment: str):
    """Switch the API URL to a predefined environment."""
    config = app.config
    config.api_url = ENVIRONMENTS[environment]
    app.store.save(config)
    console.print(f"[green]Using {environment}:[/] {config.api_url}")


@config_group.command(name="reset")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.pass_obj
def config_reset(app: AppContext, yes: bool):
    """Restore the default configuration (logs you out)."""
    if not yes:
        click.confirm("Reset configuration to defaults?", default=False, abort=True)
    app.store.reset()
    console.print("[green]Configuration reset to defaults.[/]")


@config_group.command(name="edit")
@click.pass_obj
def config_edit(app: AppContext):
    """Open the config file in $EDITOR."""
    app.config  # creates the file with defaults if missing
    click.edit(filename=str(app.store.path))


if __name__ == "__main__":
    main()
