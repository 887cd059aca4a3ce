"""Typer-based CLI for running imports and the offline pipeline stages."""

import os

os.environ.setdefault("LOGFIRE_IGNORE_NO_CONFIG", "1")

from dotenv import load_dotenv

# Values already in the environment win; .env.local overrides .env
load_dotenv(".env.local")
load_dotenv(".env")

import asyncio
import json
from pathlib import Path
from typing import Any, Optional

import typer

from property_ingest.db.repository import save_raw_scrape_result
from property_ingest.exceptions import IngestionError, ProviderTimeoutError
from property_ingest.logging_config import configure_logging
from property_ingest.models.scrape_models import HTML_PROVIDER_TAG, RawScrapeResult
from property_ingest.services.config_generator import get_config_generator
from property_ingest.services.html_cleaner import clean_html
from property_ingest.services.html_processors import preprocess_html
from property_ingest.services.ingestion_pipeline import (
    IngestionPipeline,
    IngestionResult,
    build_source_material,
    clean_raw_result,
)
from property_ingest.services.page_config import (
    page_config_from_record,
    serialize_for_storage,
    serialize_legacy_view,
    to_current,
    to_legacy_view,
)
from property_ingest.services.provider_router import PROVIDER_REGISTRY, get_provider

app = typer.Typer(help="Turn property listing URLs into page configurations.")


def _read_text(path: Path) -> str:
    if not path.exists():
        typer.echo(f"✗ File not found: {path}", err=True)
        raise typer.Exit(1)
    return path.read_text(encoding="utf-8")


def _read_json(path: Path) -> Any:
    try:
        return json.loads(_read_text(path))
    except json.JSONDecodeError as e:
        typer.echo(f"✗ Invalid JSON in {path}: {e}", err=True)
        raise typer.Exit(1)


def _emit(content: str, output: Optional[Path]) -> None:
    if output is None:
        typer.echo(content)
        return
    output.write_text(content, encoding="utf-8")
    typer.echo(f"✓ Wrote {output}")


def _dump(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


def _build_pipeline(no_ai: bool, save: bool, preview_id: Optional[str]) -> IngestionPipeline:
    sink = None
    if save:

        def sink(raw):
            return save_raw_scrape_result(raw, preview_id=preview_id)

    return IngestionPipeline(
        generator=None if no_ai else get_config_generator(),
        raw_result_sink=sink,
    )


def _report(result: IngestionResult, output: Optional[Path]) -> None:
    if result.extraction_incomplete:
        typer.echo(
            typer.style(
                f"⚠ No usable listing data found at {result.source_url}",
                fg=typer.colors.YELLOW,
            ),
            err=True,
        )
        raise typer.Exit(2)
    if result.refinement_error:
        typer.echo(
            typer.style(
                f"⚠ Title refinement failed, kept first-pass title: {result.refinement_error}",
                fg=typer.colors.YELLOW,
            ),
            err=True,
        )
    if result.image_analysis_error:
        typer.echo(
            typer.style(
                f"⚠ Hero image analysis failed, kept the first photo: {result.image_analysis_error}",
                fg=typer.colors.YELLOW,
            ),
            err=True,
        )
    if result.page_config is None:
        typer.echo("✗ No page configuration was produced", err=True)
        raise typer.Exit(1)
    typer.echo(
        f"✓ {result.raw.provider}: {len(result.page_config.section_settings)} sections "
        f"({result.stage.value})",
        err=True,
    )
    _emit(_dump(serialize_for_storage(result.page_config)), output)


def _run_import(coro, url: str) -> IngestionResult:
    try:
        return asyncio.run(coro)
    except ProviderTimeoutError as e:
        typer.echo(f"✗ {e.detail}", err=True)
        if e.run_id:
            resume_hint = f"property-ingest resume {url} --run-id {e.run_id}"
            if e.dataset_id:
                resume_hint += f" --dataset-id {e.dataset_id}"
            typer.echo(f"  Resume with: {resume_hint}", err=True)
        raise typer.Exit(1)
    except IngestionError as e:
        typer.echo(f"✗ {e.kind}: {e.detail}", err=True)
        raise typer.Exit(1)


@app.command()
def ingest(
    url: str = typer.Argument(..., help="Listing URL"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write JSON here"),
    no_ai: bool = typer.Option(False, "--no-ai", help="Skip generation; heuristic layout only"),
    save: bool = typer.Option(False, "--save", help="Store the raw result in Supabase"),
    preview_id: Optional[str] = typer.Option(None, help="Preview id for the stored raw result"),
):
    """Import a listing URL and print its v2 page configuration."""
    configure_logging("property-ingest-cli")
    pipeline = _build_pipeline(no_ai, save, preview_id)
    typer.echo(f"Importing {url}...", err=True)
    result = _run_import(pipeline.run(url.strip()), url)
    _report(result, output)


@app.command()
def resume(
    url: str = typer.Argument(..., help="Listing URL of the timed-out import"),
    run_id: str = typer.Option(..., help="Provider run id from the timeout message"),
    dataset_id: Optional[str] = typer.Option(None, help="Dataset id, if known"),
    output: Optional[Path] = typer.Option(None, "--output", "-o"),
    no_ai: bool = typer.Option(False, "--no-ai"),
):
    """Finish a timed-out structured import by re-polling its provider run."""
    configure_logging("property-ingest-cli")
    pipeline = _build_pipeline(no_ai, save=False, preview_id=None)
    result = _run_import(pipeline.resume(url.strip(), run_id, dataset_id), url)
    _report(result, output)


@app.command("clean-html")
def clean_html_command(
    path: Path = typer.Argument(..., help="Raw HTML file"),
    url: str = typer.Option("", help="Page URL, selects a listing-site processor"),
    output: Optional[Path] = typer.Option(None, "--output", "-o"),
):
    """Strip ads, banners, navigation and empty markup from an HTML file."""
    raw = _read_text(path)
    cleaned = clean_html(preprocess_html(raw, url))
    typer.echo(f"✓ {len(raw):,} -> {len(cleaned):,} chars", err=True)
    _emit(cleaned, output)


@app.command("clean-json")
def clean_json_command(
    path: Path = typer.Argument(..., help="Provider JSON file"),
    provider: str = typer.Option(..., help="Provider id, e.g. 'zillow'"),
    output: Optional[Path] = typer.Option(None, "--output", "-o"),
):
    """Run a provider's JSON cleaner over a saved dataset."""
    handle = get_provider(provider)
    if handle is None:
        known = ", ".join(p.id for p in PROVIDER_REGISTRY)
        typer.echo(f"✗ Unknown provider '{provider}' (known: {known})", err=True)
        raise typer.Exit(1)
    _emit(_dump(handle.cleaner(_read_json(path))), output)


@app.command()
def extract(
    path: Path = typer.Argument(..., help="HTML file (raw or cleaned)"),
    url: str = typer.Option("", help="Page URL, used to resolve relative image links"),
    layout: bool = typer.Option(False, "--layout", help="Print the heuristic page layout"),
    output: Optional[Path] = typer.Option(None, "--output", "-o"),
):
    """Extract property facts from an HTML file."""
    raw = RawScrapeResult(provider=HTML_PROVIDER_TAG, source_url=url, payload=_read_text(path))
    _, record = build_source_material(raw, clean_raw_result(raw))
    if not record.has_usable_data():
        typer.echo(
            typer.style("⚠ No property data found", fg=typer.colors.YELLOW), err=True
        )
    if layout:
        _emit(_dump(serialize_for_storage(page_config_from_record(record))), output)
    else:
        _emit(_dump(record.model_dump(mode="json", exclude_none=True)), output)


@app.command("migrate-config")
def migrate_config(
    path: Path = typer.Argument(..., help="Stored configuration JSON (v1 or v2)"),
    legacy: bool = typer.Option(False, "--legacy", help="Emit the v1 view instead"),
    output: Optional[Path] = typer.Option(None, "--output", "-o"),
):
    """Convert a stored configuration to v2 (or to the v1 view)."""
    current = to_current(_read_json(path))
    if legacy:
        data = serialize_legacy_view(to_legacy_view(current))
    else:
        data = serialize_for_storage(current)
    _emit(_dump(data), output)


if __name__ == "__main__":
    app()
