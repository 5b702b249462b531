from __future__ import annotations

import logging
from pathlib import Path
from typing import NoReturn

import typer

from paperclip_core import (
    ClientConfig,
    SortOption,
    build_repository,
    load_config,
)
from paperclip_core.errors import CacheError, FetchError
from paperclip_core.repository import sort_items
from paperclip_core.storage import DiskStore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

app = typer.Typer(help="Paperclip classifieds CLI")
cache_app = typer.Typer(help="Cache commands")
app.add_typer(cache_app, name="cache")

CONFIG_OPTION = typer.Option(
    None,
    "--config",
    help="Config file path (JSON or YAML).",
    exists=True,
    dir_okay=False,
    readable=True,
)
CACHE_DIR_OPTION = typer.Option(
    None,
    "--cache-dir",
    help="Cache directory. Defaults to the platform cache directory.",
)
REFRESH_OPTION = typer.Option(
    False,
    "--refresh",
    help="Ignore in-memory snapshots and refetch.",
)


@app.command()
def categories(
    config_path: Path | None = CONFIG_OPTION,
    cache_dir: Path | None = CACHE_DIR_OPTION,
    refresh: bool = REFRESH_OPTION,
) -> None:
    """List categories."""
    repo = build_repository(_resolve_config(config_path, cache_dir))
    try:
        rows = repo.get_categories(force_refresh=refresh)
    except (FetchError, CacheError) as exc:
        _fail(exc)
    finally:
        repo.close()

    for category in rows:
        typer.echo(f"{category.id}\t{category.name}")


@app.command()
def listings(
    category: int | None = typer.Option(
        None,
        "--category",
        help="Only show listings of this category id (-1 for all).",
    ),
    sort: SortOption | None = typer.Option(
        None,
        "--sort",
        help="Sort order.",
        case_sensitive=False,
    ),
    with_category: bool = typer.Option(
        False,
        "--with-category",
        help="Show the category name of each listing.",
    ),
    limit: int = typer.Option(20, "--limit", min=0, help="Maximum rows to print (0 = all)."),
    config_path: Path | None = CONFIG_OPTION,
    cache_dir: Path | None = CACHE_DIR_OPTION,
    refresh: bool = REFRESH_OPTION,
) -> None:
    """List classified ads, optionally filtered and sorted."""
    repo = build_repository(_resolve_config(config_path, cache_dir))
    try:
        names: dict[int, str] = {}
        if with_category:
            pairs = repo.get_items_with_category_name(force_refresh=refresh)
            names = {item.id: name for item, name in pairs}
            refresh = False
        items = repo.get_items_filtered(category, force_refresh=refresh)
        if sort is not None:
            items = sort_items(items, sort)
    except (FetchError, CacheError) as exc:
        _fail(exc)
    finally:
        repo.close()

    rows = items[:limit] if limit else items
    for item in rows:
        urgent = "!" if item.is_urgent else " "
        line = (
            f"{urgent} {item.id}\t{item.creation_date:%Y-%m-%d}\t"
            f"{item.price:>10.2f}\t{item.title}"
        )
        if with_category:
            line += f"\t[{names.get(item.id, '')}]"
        typer.echo(line)
    typer.echo(f"shown {len(rows)} of {len(items)} listings")


@cache_app.command("clear")
def cache_clear(cache_dir: Path | None = CACHE_DIR_OPTION) -> None:
    """Delete every cached response on disk."""
    config = _resolve_config(None, cache_dir)
    try:
        store = DiskStore(config.caching.directory, app_id=config.caching.app_id)
        removed = len(store.keys())
        store.clear()
    except CacheError as exc:
        _fail(exc)
    typer.echo(f"cache cleared ({removed} entries) at {store.directory}")


@cache_app.command("info")
def cache_info(cache_dir: Path | None = CACHE_DIR_OPTION) -> None:
    """Show the cache directory and its entries."""
    config = _resolve_config(None, cache_dir)
    try:
        store = DiskStore(config.caching.directory, app_id=config.caching.app_id)
    except CacheError as exc:
        _fail(exc)
    keys = store.keys()
    typer.echo(f"directory: {store.directory}")
    typer.echo(f"entries: {len(keys)}")
    for key in keys:
        typer.echo(f"  {key}")


def _resolve_config(config_path: Path | None, cache_dir: Path | None) -> ClientConfig:
    try:
        config = load_config(config_path) if config_path is not None else ClientConfig()
    except ValueError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    if cache_dir is not None:
        config = config.model_copy(
            update={"caching": config.caching.model_copy(update={"directory": str(cache_dir)})}
        )
    return config


def _fail(exc: Exception) -> NoReturn:
    kind = getattr(exc, "kind", type(exc).__name__)
    message = getattr(exc, "message", str(exc))
    typer.echo(f"error: {kind}: {message}", err=True)
    raise typer.Exit(code=1)
