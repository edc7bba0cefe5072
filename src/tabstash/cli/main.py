"""Typer CLI entrypoint and command definitions for tabstash."""

import asyncio
import json
import logging
from pathlib import Path

import typer

from tabstash.core.defaults import DEFAULT_STORE_PATH

app = typer.Typer()

_STORE_HELP = "Path to the JSON blob store"


def _stash(store: str):  # type: ignore[no-untyped-def]
    from tabstash.core.store import JsonFileBlobStore
    from tabstash.tabs.service import TabStash

    return TabStash(JsonFileBlobStore(Path(store)))


def _check_period(period: str) -> None:
    from tabstash.core.types import RETENTION_LABELS

    if period not in RETENTION_LABELS:
        typer.echo(f"Unknown period {period!r}; expected one of: {', '.join(sorted(RETENTION_LABELS))}", err=True)
        raise typer.Exit(code=1)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log to stderr (URLs and titles redacted)"),
) -> None:
    """Save browser tabs into domain groups and expire them on schedule."""
    if verbose:
        from tabstash.core.logging import install_sanitizing_filter

        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
        install_sanitizing_filter(handler_level=True)


# -- tabs ---------------------------------------------------------------------
tabs_app = typer.Typer()
app.add_typer(tabs_app, name="tabs")


@tabs_app.command("save")
def tabs_save_cmd(
    file: str = typer.Option(..., "--file", help="JSON list of tabs ({url, title})"),
    store: str = typer.Option(DEFAULT_STORE_PATH, help=_STORE_HELP),
) -> None:
    """Save tabs from a JSON file, grouping and classifying them by domain."""
    from tabstash.core.types import Tab

    path = Path(file)
    if not path.exists():
        typer.echo(f"File not found: {path}", err=True)
        raise typer.Exit(code=1)

    tabs = [Tab.model_validate(t) for t in json.loads(path.read_text("utf-8"))]
    outcome = asyncio.run(_stash(store).save_tabs_with_auto_category(tabs))
    typer.echo(f"Saved {outcome.saved_count} of {len(tabs)} tab(s) into {len(outcome.groups)} group(s)")
    for url in outcome.skipped:
        typer.echo(f"  skipped {url}")


@tabs_app.command("list")
def tabs_list_cmd(
    store: str = typer.Option(DEFAULT_STORE_PATH, help=_STORE_HELP),
) -> None:
    """List saved groups and their URLs."""
    from tabstash.core.time import format_ms

    groups = asyncio.run(_stash(store).get_groups())
    if not groups:
        typer.echo("No saved tabs.")
        return
    for group in groups:
        typer.echo(f"{group.domain}  [{group.id}]  saved {format_ms(group.saved_at)}")
        for entry in group.urls:
            tag = f" ({entry.sub_category})" if entry.sub_category else ""
            typer.echo(f"  {entry.url}{tag}")


@tabs_app.command("remove")
def tabs_remove_cmd(
    url: str = typer.Argument(..., help="Exact saved URL"),
    store: str = typer.Option(DEFAULT_STORE_PATH, help=_STORE_HELP),
) -> None:
    """Remove one saved URL (its group goes too if it empties)."""
    result = asyncio.run(_stash(store).remove_url_from_storage(url))
    if not result.changed:
        typer.echo(f"Not saved: {url}")
        return
    typer.echo(f"Removed {url}")
    for group_id in result.removed_group_ids:
        typer.echo(f"  group {group_id} emptied and removed")


@tabs_app.command("delete-group")
def tabs_delete_group_cmd(
    group_id: str = typer.Argument(...),
    store: str = typer.Option(DEFAULT_STORE_PATH, help=_STORE_HELP),
) -> None:
    """Delete a whole group."""
    result = asyncio.run(_stash(store).remove_group(group_id))
    if not result.changed:
        typer.echo(f"Unknown group: {group_id}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Deleted group {group_id}")


# -- expiry -------------------------------------------------------------------
expiry_app = typer.Typer()
app.add_typer(expiry_app, name="expiry")


@expiry_app.command("sweep")
def expiry_sweep_cmd(
    store: str = typer.Option(DEFAULT_STORE_PATH, help=_STORE_HELP),
) -> None:
    """Evict groups older than the configured auto-delete period."""
    result = asyncio.run(_stash(store).check_and_remove_expired_tabs())
    if result is None:
        typer.echo("Auto-delete disabled or nothing saved.")
        return
    typer.echo(f"Kept {len(result.kept)} group(s), evicted {len(result.evicted)}")
    for group in result.evicted:
        typer.echo(f"  evicted {group.domain}")


@expiry_app.command("stamp")
def expiry_stamp_cmd(
    period: str = typer.Option("never", help="30sec / 1min backdate so the next sweep evicts"),
    store: str = typer.Option(DEFAULT_STORE_PATH, help=_STORE_HELP),
) -> None:
    """Reset every group's save time (backdated for test periods), then sweep."""
    from tabstash.core.time import format_ms

    _check_period(period)
    result = asyncio.run(_stash(store).update_tab_timestamps(period))
    if not result.success:
        typer.echo("No saved tabs.")
        return
    typer.echo(f"Stamped all groups at {format_ms(result.timestamp)}")


@expiry_app.command("remaining")
def expiry_remaining_cmd(
    saved_at: int = typer.Option(..., "--saved-at", help="Epoch ms"),
    period: str = typer.Option(..., help="Retention label, e.g. 7days"),
) -> None:
    """Time left before a group saved at --saved-at expires."""
    from tabstash.tabs.expiry import time_remaining

    _check_period(period)
    remaining = time_remaining(saved_at, period)
    if remaining.time_remaining is None:
        typer.echo("Never expires")
        return
    typer.echo(f"{remaining.time_remaining // 1000}s remaining (expires at {remaining.expiration_time})")


# -- categories ---------------------------------------------------------------
categories_app = typer.Typer()
app.add_typer(categories_app, name="categories")


@categories_app.command("list")
def categories_list_cmd(
    store: str = typer.Option(DEFAULT_STORE_PATH, help=_STORE_HELP),
) -> None:
    """List parent categories."""
    categories = asyncio.run(_stash(store).get_parent_categories())
    if not categories:
        typer.echo("No parent categories.")
        return
    for category in categories:
        typer.echo(f"{category.name}  [{category.id}]")
        for name in category.domain_names:
            typer.echo(f"  {name}")


@categories_app.command("create")
def categories_create_cmd(
    name: str = typer.Argument(...),
    store: str = typer.Option(DEFAULT_STORE_PATH, help=_STORE_HELP),
) -> None:
    """Create an empty parent category."""
    try:
        category = asyncio.run(_stash(store).create_parent_category(name))
    except ValueError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(f"Created {category.name} [{category.id}]")


@categories_app.command("assign")
def categories_assign_cmd(
    group_id: str = typer.Option(..., "--group"),
    category_id: str = typer.Option(..., "--category"),
    store: str = typer.Option(DEFAULT_STORE_PATH, help=_STORE_HELP),
) -> None:
    """Move a group into a parent category."""
    try:
        asyncio.run(_stash(store).assign_group_to_category(group_id, category_id))
    except ValueError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(f"Assigned {group_id} to {category_id}")


@categories_app.command("migrate")
def categories_migrate_cmd(
    store: str = typer.Option(DEFAULT_STORE_PATH, help=_STORE_HELP),
) -> None:
    """Record domain names for every group a category references."""
    categories = asyncio.run(_stash(store).migrate_parent_categories_to_domain_names())
    typer.echo(f"Migrated {len(categories)} categor{'y' if len(categories) == 1 else 'ies'}")


@categories_app.command("import-rules")
def categories_import_rules_cmd(
    file: str = typer.Argument(..., help="YAML keyword-rules file"),
    store: str = typer.Option(DEFAULT_STORE_PATH, help=_STORE_HELP),
) -> None:
    """Apply per-domain sub-category keyword rules from YAML."""
    from tabstash.tabs.categories import load_rules

    path = Path(file)
    if not path.exists():
        typer.echo(f"File not found: {path}", err=True)
        raise typer.Exit(code=1)
    rules = load_rules(path)
    stash = _stash(store)

    async def _apply() -> int:
        applied = 0
        for domain, rule in rules.domains.items():
            if await stash.update_domain_category_settings(
                domain, rule.sub_categories, rule.category_keywords
            ):
                applied += 1
            else:
                typer.echo(f"  ignored malformed domain {domain!r}", err=True)
        return applied

    applied = asyncio.run(_apply())
    typer.echo(f"Applied rules for {applied} domain(s)")


@categories_app.command("export-rules")
def categories_export_rules_cmd(
    out: str = typer.Argument(..., help="Destination YAML file"),
    store: str = typer.Option(DEFAULT_STORE_PATH, help=_STORE_HELP),
) -> None:
    """Write the keyword rules stored on saved groups to YAML."""
    from tabstash.tabs.categories import rules_from_groups, save_rules

    groups = asyncio.run(_stash(store).get_groups())
    path = save_rules(rules_from_groups(groups), Path(out))
    typer.echo(f"Rules written to {path}")


# -- settings -----------------------------------------------------------------
settings_app = typer.Typer()
app.add_typer(settings_app, name="settings")


@settings_app.command("show")
def settings_show_cmd(
    store: str = typer.Option(DEFAULT_STORE_PATH, help=_STORE_HELP),
) -> None:
    """Print the effective settings (defaults merged with stored values)."""
    settings = asyncio.run(_stash(store).get_settings())
    typer.echo(json.dumps(settings.model_dump(mode="json", by_alias=True), indent=2))


@settings_app.command("set")
def settings_set_cmd(
    key: str = typer.Argument(..., help="Setting name, e.g. autoDeletePeriod"),
    value: str = typer.Argument(..., help="JSON value (bare strings allowed)"),
    store: str = typer.Option(DEFAULT_STORE_PATH, help=_STORE_HELP),
) -> None:
    """Change one setting."""
    from pydantic import ValidationError

    try:
        parsed = json.loads(value)
    except json.JSONDecodeError:
        parsed = value
    if key in ("autoDeletePeriod", "auto_delete_period"):
        _check_period(str(parsed))
    try:
        settings = asyncio.run(_stash(store).settings.update({key: parsed}))
    except ValidationError as exc:
        typer.echo(f"Invalid value for {key}: {exc.errors()[0]['msg']}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(json.dumps(settings.model_dump(mode="json", by_alias=True), indent=2))


if __name__ == "__main__":
    app()
