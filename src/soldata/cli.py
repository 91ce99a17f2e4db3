from __future__ import annotations

import asyncio
import json
import logging
import os
import sys
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import typer

from .workflows.browser import ImageBrowser
from .workflows.data_fetch import ConditionalFetcher, FetchConfig
from .workflows.fetcher_config import resolve_cache_root
from .workflows.image_catalog import ImageCatalogManager
from .workflows.image_types import ImageSet, Resolution
from .workflows.reports import ReportCache, ReportKind
from .workflows.settings import settings_from_env

app = typer.Typer(no_args_is_help=True, add_completion=False, help="Solar imagery and space-weather cache.")

_REPORT_KINDS = {
    "ap-forecast": ReportKind.AP_FORECAST,
    "geo-alert": ReportKind.GEO_ALERT,
}


def _configure_logging(verbose: bool) -> None:
    level_name = "DEBUG" if verbose else (os.getenv("SOLDATA_LOG_LEVEL") or "WARNING").upper()
    level = getattr(logging, level_name, logging.WARNING)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def _parse_day(value: Optional[str]) -> date:
    if not value:
        return date.today()
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise typer.BadParameter(f"Expected YYYY-MM-DD, got {value!r}")


def _selection(image_set: Optional[str], resolution: Optional[str], pfss: Optional[bool]) -> Tuple[ImageSet, Resolution, bool]:
    try:
        defaults = settings_from_env()
        chosen_set = ImageSet(image_set) if image_set else defaults.image_set
        chosen_resolution = Resolution(resolution) if resolution else defaults.resolution
    except ValueError as exc:
        raise typer.BadParameter(str(exc))
    return chosen_set, chosen_resolution, defaults.pfss_enabled if pfss is None else pfss


def _emit(payload: Any, json_out: bool, lines: Optional[list] = None) -> None:
    if json_out:
        sys.stdout.write(json.dumps(payload, ensure_ascii=False) + "\n")
        return
    for line in lines or []:
        typer.echo(line)


def _run(coro: Any) -> Any:
    try:
        return asyncio.run(coro)
    except Exception as exc:
        typer.echo(f"fatal: {exc}", err=True)
        raise typer.Exit(code=3)


@app.callback()
def main(
    ctx: typer.Context,
    cache_dir: Optional[Path] = typer.Option(None, "--cache-dir", help="Cache root (default: SOLDATA_CACHE_DIR or ~/.cache/soldata)."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
) -> None:
    _configure_logging(verbose)
    ctx.obj = {"cache_dir": cache_dir}


@app.command("images")
def images_cmd(
    ctx: typer.Context,
    day: Optional[str] = typer.Option(None, "--day", help="Day as YYYY-MM-DD (default: today)."),
    image_set: Optional[str] = typer.Option(None, "--image-set", help="Image set code, e.g. 0171."),
    resolution: Optional[str] = typer.Option(None, "--resolution", help="Resolution, e.g. 1024."),
    pfss: Optional[bool] = typer.Option(None, "--pfss/--no-pfss", help="Select the pfss variant."),
    json_out: bool = typer.Option(False, "--json", help="Print JSON to stdout."),
) -> None:
    """List images for a day, most recent first."""
    target_day = _parse_day(day)
    chosen_set, chosen_resolution, chosen_pfss = _selection(image_set, resolution, pfss)
    root = resolve_cache_root(ctx.obj["cache_dir"])

    async def _list() -> list:
        async with ConditionalFetcher(FetchConfig()) as fetcher:
            manager = ImageCatalogManager(root, fetcher)
            return await manager.list_images(target_day, chosen_set, chosen_resolution, chosen_pfss)

    descriptors = _run(_list())
    payload = [{"key": d.key, "timestamp": d.timestamp.isoformat(), "url": d.remote_url} for d in descriptors]
    _emit(payload, json_out, [f"{d.key}\t{d.remote_url}" for d in descriptors])


@app.command("prefetch")
def prefetch_cmd(
    ctx: typer.Context,
    day: Optional[str] = typer.Option(None, "--day", help="Day as YYYY-MM-DD (default: today)."),
    image_set: Optional[str] = typer.Option(None, "--image-set", help="Image set code, e.g. 0171."),
    resolution: Optional[str] = typer.Option(None, "--resolution", help="Resolution, e.g. 1024."),
    pfss: Optional[bool] = typer.Option(None, "--pfss/--no-pfss", help="Select the pfss variant."),
    json_out: bool = typer.Option(False, "--json", help="Print JSON to stdout."),
) -> None:
    """Download images for a day that are not cached yet."""
    target_day = _parse_day(day)
    chosen_set, chosen_resolution, chosen_pfss = _selection(image_set, resolution, pfss)
    root = resolve_cache_root(ctx.obj["cache_dir"])

    async def _prefetch() -> Dict[str, Any]:
        async with ConditionalFetcher(FetchConfig()) as fetcher:
            manager = ImageCatalogManager(root, fetcher)
            summary = await manager.prefetch(target_day, chosen_set, chosen_resolution, chosen_pfss)
            return summary.to_dict()

    summary = _run(_prefetch())
    _emit(
        summary,
        json_out,
        [f"fetched {len(summary['fetched'])} of {len(summary['requested'])} missing; {len(summary['failed'])} failed"],
    )


@app.command("latest")
def latest_cmd(
    ctx: typer.Context,
    save: Optional[Path] = typer.Option(None, "--save", help="Write the decoded image to this path."),
    json_out: bool = typer.Option(False, "--json", help="Print JSON to stdout."),
) -> None:
    """Show today's most recent image for the configured selection."""
    root = resolve_cache_root(ctx.obj["cache_dir"])
    try:
        settings = settings_from_env()
    except ValueError as exc:
        raise typer.BadParameter(str(exc))

    async def _latest() -> Dict[str, Any]:
        async with ConditionalFetcher(FetchConfig()) as fetcher:
            browser = ImageBrowser(ImageCatalogManager(root, fetcher), settings)
            try:
                image = await browser.latest()
            finally:
                await browser.close()
            if save is not None:
                image.save(save)
            current = browser.current
            return {
                "key": current.key if current else None,
                "size": list(getattr(image, "size", ())),
                "mode": getattr(image, "mode", None),
            }

    info = _run(_latest())
    _emit(info, json_out, [f"{info['key']} {info['size'][0]}x{info['size'][1]} {info['mode']}"] if info["size"] else [str(info["key"])])


@app.command("report")
def report_cmd(
    ctx: typer.Context,
    kind: str = typer.Argument(..., help="ap-forecast or geo-alert."),
    json_out: bool = typer.Option(False, "--json", help="Print JSON to stdout."),
) -> None:
    """Fetch a space-weather report, reusing the cached copy when unchanged."""
    report_kind = _REPORT_KINDS.get(kind)
    if report_kind is None:
        typer.echo(f"error: unknown report kind {kind!r}; expected one of {', '.join(_REPORT_KINDS)}", err=True)
        raise typer.Exit(code=2)
    root = resolve_cache_root(ctx.obj["cache_dir"])

    async def _report() -> Dict[str, Any]:
        async with ConditionalFetcher(FetchConfig()) as fetcher:
            document = await ReportCache(root, fetcher).get(report_kind)
            return document.to_dict()

    payload = _run(_report())
    lines = [f"Issued: {payload['issued_date']}", payload["prepared"]]
    if "body" in payload:
        lines.append(payload["body"])
    else:
        lines.extend(f"{day}  Ap {ap:3d}  F10.7 {payload['forecast_flux'].get(day, '-')}" for day, ap in payload["forecast_ap"].items())
    _emit(payload, json_out, lines)
