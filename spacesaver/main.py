import typer
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.table import Table

from spacesaver.config.loader import load_config, load_demo_config
from spacesaver.config.models import AppConfig
from spacesaver.config.scan_paths import (
    PathSet,
    build_scan_path_lines,
    clean_path_entries,
    evaluate_scan_paths,
    parse_cli_scan_paths,
    validate_scan_path_entries,
)
from spacesaver.domain.errors import (
    EngineCommandError,
    EngineUnavailableError,
    PlanError,
    PoolError,
    ScanError,
    SelectionError,
)
from spacesaver.domain.models import FilterConfig
from spacesaver.infrastructure.demo_engine import DemoEngine
from spacesaver.infrastructure.engine import SubprocessEngine
from spacesaver.infrastructure.event_bus import EventBus
from spacesaver.infrastructure.logging import setup_logging
from spacesaver.infrastructure.settings_store import FILTER_CONFIG_KEY, SCAN_PATHS_KEY, SettingsStore
from spacesaver.pipeline.workflow import CompressionWorkflow
from spacesaver.ui.dashboard import Dashboard, build_results_table, build_scan_summary
from spacesaver.ui.formatting import format_size, format_time
from spacesaver.ui.manager import UIManager
from spacesaver.ui.state import UIState

DEFAULT_CONFIG_PATH = Path("conf/spacesaver.yaml")
DEFAULT_DEMO_CONFIG_PATH = Path("conf/demo.yaml")
DEMO_SCAN_PATHS = ["/demo/photos", "/demo/archive"]

app = typer.Typer(help="Space Saver - in-place batch compression of images and archives")
paths_app = typer.Typer(help="Manage the saved scan roots")
app.add_typer(paths_app, name="paths")

# Errors the user can fix; anything else is reported as fatal
USER_ERRORS = (
    SelectionError,
    ScanError,
    PlanError,
    EngineUnavailableError,
    EngineCommandError,
    FileNotFoundError,
    ValueError,
)


def _fail(message: str, code: int = 1):
    typer.secho(f"Error: {message}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=code)


def _load_app_config(config_path: Optional[Path]) -> AppConfig:
    if config_path is None:
        return load_config(DEFAULT_CONFIG_PATH, required=False)
    return load_config(config_path)


def _store_for(config: AppConfig) -> SettingsStore:
    return SettingsStore(Path(config.general.state_path))


def _build_engine(config: AppConfig, demo: bool, demo_config_path: Optional[Path]):
    if demo:
        return DemoEngine(
            load_demo_config(demo_config_path or DEFAULT_DEMO_CONFIG_PATH),
            item_timeout_s=config.general.item_timeout_s,
        )
    return SubprocessEngine(
        config.general.engine_path,
        timeout_s=config.general.engine_timeout_s,
        item_timeout_s=config.general.item_timeout_s,
    )


def _resolve_filter(
    config: AppConfig,
    store: SettingsStore,
    min_size: Optional[int],
    max_size: Optional[int],
    extensions: Optional[List[str]],
    pattern: Optional[str],
) -> FilterConfig:
    """CLI flags win over the saved filter, which wins over the config file."""
    base = config.scan.filter
    saved = store.load(FILTER_CONFIG_KEY)
    if isinstance(saved, dict):
        base = FilterConfig(**saved)
    updates = {}
    if min_size is not None:
        updates["min_size"] = min_size
    if max_size is not None:
        updates["max_size"] = max_size
    if extensions:
        updates["extensions"] = [ext.lower().lstrip(".") for ext in extensions]
    if pattern is not None:
        updates["file_pattern"] = pattern
    resolved = FilterConfig(**{**base.model_dump(), **updates})
    if resolved.min_size is not None and resolved.max_size is not None and resolved.min_size > resolved.max_size:
        raise ValueError("--min-size must not exceed --max-size")
    return resolved


def _collapse_roots(entries: List[str], console: Console) -> List[str]:
    """Feeds entries through a PathSet, reporting the ones it refuses."""
    path_set = PathSet()
    for entry in entries:
        validation = path_set.add(entry)
        if not validation.is_valid:
            console.print(f"[yellow]Skipping {entry}: {'; '.join(validation.warnings)}[/]")
        elif validation.contains:
            console.print(f"[yellow]{entry}: {validation.warnings[-1]}[/]")
    return path_set.roots


def _resolve_scan_paths(
    scan_paths_arg: Optional[str],
    config: AppConfig,
    store: SettingsStore,
    demo: bool,
    console: Console,
) -> List[str]:
    if scan_paths_arg is not None:
        requested = parse_cli_scan_paths(scan_paths_arg)
        if not requested:
            raise SelectionError("No scan paths provided on the command line.")
    else:
        saved = store.load(SCAN_PATHS_KEY, [])
        requested = clean_path_entries(saved if isinstance(saved, list) else [])
        if not requested:
            requested = clean_path_entries(config.scan.scan_paths)
        if not requested and demo:
            requested = list(DEMO_SCAN_PATHS)
        if not requested:
            raise SelectionError("No scan paths provided in CLI, saved settings or config.")

    validate_scan_path_entries(requested)
    roots = _collapse_roots(requested, console)
    if demo:
        return roots

    valid, status_entries = evaluate_scan_paths(roots)
    console.print(f"Scan paths: {len(status_entries)}")
    for line in build_scan_path_lines(status_entries):
        console.print(line)
    if not valid:
        raise SelectionError("No valid scan paths found (missing or inaccessible).")
    return valid


@app.command()
def compress(
    scan_paths_arg: Optional[str] = typer.Argument(
        None,
        help="Directory or comma-separated directories to scan (optional if saved or set in config)"
    ),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
    pool_size: Optional[int] = typer.Option(None, "--pool-size", "-j", help="Max files compressed at once (1-20)"),
    plugins: Optional[List[str]] = typer.Option(None, "--plugin", "-p", help="Active plugin, repeat in priority order"),
    min_size: Optional[int] = typer.Option(None, "--min-size", help="Minimum file size in bytes"),
    max_size: Optional[int] = typer.Option(None, "--max-size", help="Maximum file size in bytes"),
    extensions: Optional[List[str]] = typer.Option(None, "--ext", help="Only scan this extension (repeatable)"),
    pattern: Optional[str] = typer.Option(None, "--pattern", help="Only scan files whose name contains this text"),
    save_filter: bool = typer.Option(False, "--save-filter", help="Remember the resulting filter for later runs"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Per-file timeout in seconds"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
    demo: bool = typer.Option(False, "--demo", help="Run in demo mode (simulated engine, no file IO)"),
    demo_config_path: Optional[Path] = typer.Option(None, "--demo-config", help="Path to demo YAML config"),
    log_path: Optional[Path] = typer.Option(None, "--log-path", help="Path to log file (overrides config)"),
    debug: bool = typer.Option(False, "--debug/--no-debug", help="Enable verbose debug logging"),
):
    """Scan, confirm and compress files in place."""
    console = Console()
    try:
        config = _load_app_config(config_path)
        if pool_size is not None:
            config.general.pool_size = pool_size
        if plugins:
            config.general.plugin_order = list(plugins)
        if timeout is not None:
            config.general.item_timeout_s = timeout
        if log_path is not None:
            config.general.log_path = str(log_path)
        if debug:
            config.general.debug = True
        # Re-validate CLI overrides against the model constraints
        config = AppConfig(**config.model_dump())

        log_file = Path(config.general.log_path).expanduser()
        logger = setup_logging(log_file.parent, debug=config.general.debug, log_path=log_file)
        logger.info(
            f"Space Saver started: pool_size={config.general.pool_size}, "
            f"plugins={config.general.plugin_order or 'all'}, demo={demo}, debug={config.general.debug}"
        )

        store = _store_for(config)
        filter_config = _resolve_filter(config, store, min_size, max_size, extensions, pattern)
        if save_filter:
            store.save(FILTER_CONFIG_KEY, filter_config.model_dump())
        scan_paths = _resolve_scan_paths(scan_paths_arg, config, store, demo, console)

        bus = EventBus()
        ui_state = UIState(recent_results_max_items=config.ui.recent_results_max_items)
        ui_state.ui_title = "SPACE SAVER - demo" if demo else "SPACE SAVER"
        UIManager(bus, ui_state)

        engine = _build_engine(config, demo, demo_config_path)
        workflow = CompressionWorkflow(
            engine,
            bus,
            pool_size=config.general.pool_size,
            plugin_order=config.general.plugin_order,
            item_timeout_s=config.general.item_timeout_s,
        )
        workflow.load_plugins()

        with console.status("Scanning..."):
            result = workflow.scan(
                scan_paths,
                filter_config=None if filter_config.is_empty() else filter_config,
            )
        if not result.compressible:
            console.print(f"No compressible files found ({len(result.rejected)} rejected).")
            return
        console.print(build_scan_summary(result))

        workflow.confirm()
        count = len(workflow.selected_files)
        if not yes and not typer.confirm(
            f"Compress {count} files in place with {workflow.pool_size} workers?", default=False
        ):
            workflow.cancel()
            console.print("Aborted, nothing was changed.")
            return

        dashboard = Dashboard(ui_state, max_in_flight=config.ui.in_flight_max_display, console=console)
        with dashboard:
            progress = workflow.process()

        snapshot = progress.snapshot()
        console.print(build_results_table(list(progress.results)))
        summary = (
            f"{snapshot.succeeded_count} compressed, {snapshot.failed_count} failed, "
            f"saved {format_size(snapshot.total_savings)} in {format_time(progress.elapsed_seconds)}"
        )
        if snapshot.cancelled:
            summary += f" (cancelled, {snapshot.total - snapshot.completed_count} not started)"
        console.print(summary)

    except KeyboardInterrupt:
        typer.secho("\n✓ Compression stopped by user (Ctrl+C)", fg=typer.colors.YELLOW)
        raise typer.Exit(code=130)

    except typer.Exit:
        raise

    except PoolError as e:
        _fail(f"Internal error: {e}", code=2)

    except USER_ERRORS as e:
        _fail(str(e))

    except Exception as e:
        with open("error.log", "a") as f:
            import traceback
            traceback.print_exc(file=f)
        typer.secho(f"Fatal Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)


@app.command("plugins")
def list_plugins(
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
    demo: bool = typer.Option(False, "--demo", help="List the demo engine's plugins"),
    demo_config_path: Optional[Path] = typer.Option(None, "--demo-config", help="Path to demo YAML config"),
):
    """List the compression plugins the engine provides."""
    console = Console()
    try:
        config = _load_app_config(config_path)
        engine = _build_engine(config, demo, demo_config_path)
        catalog = engine.get_compression_plugins()
    except USER_ERRORS as e:
        _fail(str(e))
    active = config.general.plugin_order
    table = Table(title="Compression plugins")
    table.add_column("Name")
    table.add_column("Version")
    table.add_column("Description")
    table.add_column("Priority", justify="right")
    for plugin in catalog:
        priority = str(active.index(plugin.name) + 1) if plugin.name in active else ("-" if active else "auto")
        table.add_row(plugin.name, plugin.version, plugin.description, priority)
    console.print(table)


@paths_app.command("list")
def paths_list(
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
):
    """Show the saved scan roots and whether they are reachable."""
    try:
        store = _store_for(_load_app_config(config_path))
    except USER_ERRORS as e:
        _fail(str(e))
    roots = store.load(SCAN_PATHS_KEY, [])
    if not roots:
        typer.echo("No saved scan paths.")
        return
    _, status_entries = evaluate_scan_paths(roots)
    console = Console()
    for line in build_scan_path_lines(status_entries):
        console.print(line)


@paths_app.command("add")
def paths_add(
    paths: List[str] = typer.Argument(..., help="Directories to add"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
):
    """Add scan roots; duplicates and covered paths are refused."""
    try:
        store = _store_for(_load_app_config(config_path))
    except USER_ERRORS as e:
        _fail(str(e))
    path_set = PathSet(store.load(SCAN_PATHS_KEY, []))
    refused = 0
    for path in clean_path_entries(paths):
        validation = path_set.add(path)
        for warning in validation.warnings:
            typer.secho(f"{path}: {warning}", fg=typer.colors.YELLOW)
        if validation.is_valid:
            typer.echo(f"Added {path}")
        else:
            refused += 1
    try:
        validate_scan_path_entries(path_set.roots)
    except ValueError as e:
        _fail(str(e))
    store.save(SCAN_PATHS_KEY, path_set.roots)
    if refused:
        raise typer.Exit(code=1)


@paths_app.command("remove")
def paths_remove(
    paths: List[str] = typer.Argument(..., help="Directories to remove"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
):
    """Remove saved scan roots."""
    try:
        store = _store_for(_load_app_config(config_path))
    except USER_ERRORS as e:
        _fail(str(e))
    path_set = PathSet(store.load(SCAN_PATHS_KEY, []))
    missing = 0
    for path in clean_path_entries(paths):
        if path_set.remove(path):
            typer.echo(f"Removed {path}")
        else:
            typer.secho(f"{path}: not in the list", fg=typer.colors.YELLOW)
            missing += 1
    store.save(SCAN_PATHS_KEY, path_set.roots)
    if missing:
        raise typer.Exit(code=1)


@paths_app.command("clear")
def paths_clear(
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
):
    """Forget every saved scan root."""
    try:
        store = _store_for(_load_app_config(config_path))
    except USER_ERRORS as e:
        _fail(str(e))
    store.save(SCAN_PATHS_KEY, [])
    typer.echo("Cleared saved scan paths.")


if __name__ == "__main__":
    app()
