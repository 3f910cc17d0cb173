"""
Developer CLI for Skald.

Inspects the effective configuration, the configured hooks and recorded
conversation logs. The agent loop itself is a library; there is no
interactive mode here.
"""

import json as _json
import pathlib as _pathlib
import typing as _typing

import click as _click
import rich.console as _rich_console
import rich.markup as _rich_markup
import rich.panel as _rich_panel
import rich.syntax as _rich_syntax
import rich.table as _rich_table
import yaml as _yaml

import skald
import skald.config as config
import skald.core.errors as errors
import skald.core.types as types
import skald.hooks.config as hooks_config
import skald.hooks.pipeline as hooks_pipeline
import skald.logging as skald_logging

# Custom Click context settings for better help formatting
CONTEXT_SETTINGS: dict[str, _typing.Any] = {
    "help_option_names": ["-h", "--help"],
    "max_content_width": 100,
}

_ROLE_STYLES = {
    types.Role.SYSTEM: "magenta",
    types.Role.USER: "green",
    types.Role.ASSISTANT: "cyan",
    types.Role.TOOL: "yellow",
}


def _console() -> _rich_console.Console:
    return _rich_console.Console(highlight=False)


def _get_settings(ctx: _click.Context) -> config.Settings:
    """Settings are built on first use so --help works with a broken config."""
    obj: dict[str, _typing.Any] = ctx.ensure_object(dict)
    if "settings" not in obj:
        try:
            obj["settings"] = config.Settings()
        except (config.ConfigFileError, ValueError) as e:
            raise _click.ClickException(str(e)) from e
    return obj["settings"]  # type: ignore[no-any-return]


@_click.group(context_settings=CONTEXT_SETTINGS)
@_click.version_option(skald.__version__, "-v", "--version", prog_name="skald")
@_click.pass_context
def cli(ctx: _click.Context) -> None:
    """Skald - reasoning/acting agent loop developer tools."""
    ctx.ensure_object(dict)


def main() -> None:
    cli()


# =============================================================================
# config
# =============================================================================


@cli.group(name="config")
def config_group() -> None:
    """Configuration commands."""


@config_group.command(name="show")
@_click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@_click.pass_context
def config_show(ctx: _click.Context, as_json: bool) -> None:
    """Show effective configuration from all sources.

    Displays the merged configuration from field defaults, user config,
    project config and SKALD_* environment variables.
    """
    settings = _get_settings(ctx)
    data = settings.to_dict()
    extras = settings.collect_all_extra_fields()

    if as_json:
        _click.echo(_json.dumps({**data, "unknown_fields": extras}, indent=2))
        return

    console = _console()
    yaml_text = _yaml.dump(data, default_flow_style=False, sort_keys=False)
    console.print(_rich_syntax.Syntax(yaml_text, "yaml", background_color="default"))
    if extras:
        console.print("[yellow]Unknown config keys (possible typos):[/yellow]")
        for path, value in extras.items():
            console.print(f"  {path}: {value!r}")


# =============================================================================
# hooks
# =============================================================================


@cli.group(name="hooks")
def hooks_group() -> None:
    """Hook configuration commands."""


def _load_hooks_config(settings: config.Settings) -> hooks_config.HooksConfig:
    try:
        if settings.hooks.config_file is not None:
            return hooks_config.load_hooks_yaml(settings.hooks.config_file)
        return hooks_config.load_merged_config(settings.project_root)
    except (FileNotFoundError, ValueError) as e:
        raise _click.ClickException(str(e)) from e


@hooks_group.command(name="list")
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
@_click.pass_context
def hooks_list(ctx: _click.Context, json_output: bool) -> None:
    """List configured hooks (global + project)."""
    settings = _get_settings(ctx)
    merged = _load_hooks_config(settings)
    global_path = hooks_config.get_global_hooks_path()
    project_path = hooks_config.get_project_hooks_path(settings.project_root)

    if json_output:
        _click.echo(_json.dumps({
            "hooks": [h.model_dump(mode="json") for h in merged.hooks],
            "global_config": str(global_path),
            "project_config": str(project_path),
        }, indent=2))
        return

    console = _console()
    console.print("Hook Configuration:")
    console.print(f"  Global: {global_path} {'✓' if global_path.exists() else '(not found)'}")
    console.print(f"  Project: {project_path} {'✓' if project_path.exists() else '(not found)'}")
    if settings.hooks.config_file is not None:
        console.print(f"  Explicit: {settings.hooks.config_file}")
    console.print()

    if not merged.hooks:
        console.print("No hooks configured.")
        return

    table = _rich_table.Table("Name", "Target", "Priority", "Enabled")
    for h in merged.hooks:
        table.add_row(
            h.name,
            h.target,
            "default" if h.priority is None else str(h.priority),
            "✓" if h.enabled else "✗",
        )
    console.print(table)


@hooks_group.command(name="check")
@_click.pass_context
def hooks_check(ctx: _click.Context) -> None:
    """Import and instantiate every enabled hook.

    Exits with status 1 if any hook fails to load.
    """
    settings = _get_settings(ctx)
    merged = _load_hooks_config(settings)
    console = _console()
    failures = 0

    for definition in merged.enabled_hooks():
        try:
            hook = hooks_config.build_hook(definition)
        except errors.HookLoadError as e:
            failures += 1
            console.print(f"[red]✗[/red] {definition.name}: {e}")
            continue
        priority = getattr(hook, "priority", None)
        console.print(
            f"[green]✓[/green] {hooks_pipeline.hook_name(hook)} "
            f"({definition.target}, priority {priority})"
        )

    if failures:
        console.print(f"{failures} hook(s) failed to load")
        ctx.exit(1)
    console.print(f"{len(merged.enabled_hooks())} hook(s) OK")


# =============================================================================
# log
# =============================================================================


@cli.group(name="log")
def log_group() -> None:
    """Conversation log commands."""


def _render_turn(console: _rich_console.Console, turn: types.Turn) -> None:
    lines: list[str] = []
    if turn.reasoning:
        lines.append(f"[dim]{_rich_markup.escape(turn.reasoning)}[/dim]")
    if turn.text:
        lines.append(_rich_markup.escape(turn.text))
    for invocation in turn.tool_invocations:
        lines.append(
            f"→ {invocation.name}({_rich_markup.escape(_json.dumps(invocation.arguments))}) "
            f"[dim]#{invocation.id}[/dim]"
        )
    for outcome in turn.tool_outcomes:
        marker = "✗" if outcome.is_error else "←"
        output = _rich_markup.escape(outcome.output)
        lines.append(f"{marker} {outcome.name}: {output} [dim]#{outcome.id}[/dim]")

    title = turn.role.value if turn.name is None else f"{turn.role.value} ({turn.name})"
    subtitle = turn.reason.value if turn.reason is not None else None
    console.print(
        _rich_panel.Panel(
            "\n".join(lines) or "[dim](empty)[/dim]",
            title=title,
            title_align="left",
            subtitle=subtitle,
            border_style=_ROLE_STYLES.get(turn.role, "white"),
        )
    )


@log_group.command(name="show")
@_click.argument(
    "log_file",
    type=_click.Path(exists=True, dir_okay=False, path_type=_pathlib.Path),
)
@_click.option("--json", "json_output", is_flag=True, help="Raw events as JSON")
def log_show(log_file: _pathlib.Path, json_output: bool) -> None:
    """Render a conversation log file."""
    reader = skald_logging.LogReader(log_file)

    if json_output:
        _click.echo(_json.dumps(reader.get_events(), indent=2))
        return

    console = _console()
    info = reader.get_session_info()
    console.print(f"Log: {log_file.name}")
    if info:
        console.print(
            f"  Agent: {info.get('agent_name')}  "
            f"Provider: {info.get('provider')}  Model: {info.get('model')}"
        )
        console.print(f"  Started: {info.get('start_time')}")

    system_prompt = reader.get_system_prompt()
    if system_prompt:
        console.print(
            _rich_panel.Panel(
                _rich_markup.escape(system_prompt), title="system prompt", title_align="left"
            )
        )

    for turn in reader.get_turns():
        _render_turn(console, turn)

    for event in reader.get_events("interrupted"):
        console.print(f"[red]Interrupted during {event.get('phase')}[/red]")

    usage = reader.get_usage_totals()
    if usage["total_tokens"]:
        console.print(
            f"Tokens: {usage['input_tokens']:,} in / {usage['output_tokens']:,} out "
            f"({usage['total_tokens']:,} total)"
        )
