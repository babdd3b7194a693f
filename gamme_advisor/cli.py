"""
Gamme Advisor — CLI entry point.

All commands follow this pattern:
  1. Load ``AppConfig`` via ``load_config()``.
  2. Configure logging.
  3. Load the products file (a JSON array of product metrics objects).
  4. Run the engines / analyses.
  5. Report to stdout, optionally export CSV or JSON.

Install and run::

    pip install -e .
    gamme-advisor --help
    gamme-advisor validate-config
    gamme-advisor score data/products.json
    gamme-advisor profile data/products.json --product 3017620422003
    gamme-advisor categorize data/products.json --with-llm
    gamme-advisor analyze data/products.json --product 3017620422003
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer

app = typer.Typer(
    name="gamme-advisor",
    help="Gamme Advisor — assortment scoring and A/C/Z recommendations.",
    add_completion=False,
)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _load_config_or_exit(config_path: Optional[str] = None):
    """Load AppConfig, printing a friendly error and exiting on failure."""
    from gamme_advisor.config import load_config

    try:
        cfg_path = Path(config_path) if config_path else None
        return load_config(cfg_path)
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except Exception as exc:
        typer.echo(f"[ERROR] Config validation failed: {exc}", err=True)
        raise typer.Exit(code=1)


def _configure_logging(config):
    """Set up logging from config."""
    from gamme_advisor.utils.logging import configure_logging
    configure_logging(config.logging)


def _load_products_or_exit(products_file: str):
    """Parse a JSON array of products, exiting with [ERROR] on any problem."""
    from pydantic import ValidationError

    from gamme_advisor.models.product import ProductMetrics

    path = Path(products_file)
    if not path.exists():
        typer.echo(f"[ERROR] Products file not found: {path}", err=True)
        raise typer.Exit(code=1)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except ValueError as exc:
        typer.echo(f"[ERROR] Invalid JSON in {path}: {exc}", err=True)
        raise typer.Exit(code=1)
    if not isinstance(raw, list):
        typer.echo(f"[ERROR] {path} must contain a JSON array of products.", err=True)
        raise typer.Exit(code=1)
    try:
        return [ProductMetrics.model_validate(item) for item in raw]
    except ValidationError as exc:
        typer.echo(f"[ERROR] Invalid product data: {exc}", err=True)
        raise typer.Exit(code=1)


def _open_client_or_exit(config):
    """Build the completion client from config, exiting if the key is missing."""
    from gamme_advisor.errors import LLMConfigurationError
    from gamme_advisor.llm.client import CompletionClient

    try:
        return CompletionClient(config.llm, api_key=config.llm.resolve_api_key())
    except LLMConfigurationError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)


def _export(rows: list[dict], export_path: Optional[str]) -> None:
    from gamme_advisor.reporting.export import export_to_csv, export_to_json

    if not export_path:
        return
    path = Path(export_path)
    if path.suffix.lower() == ".json":
        export_to_json(rows, path)
    else:
        export_to_csv(rows, path)
    typer.echo(f"  Exported {len(rows)} row(s) to {path}")


_CONFIG_OPTION_HELP = "Path to TOML config file (default: config/default.toml)."


# ── Commands ──────────────────────────────────────────────────────────────────

@app.command("validate-config")
def validate_config(
    config_path: Optional[str] = typer.Option(None, "--config", help=_CONFIG_OPTION_HELP),
    show_full: bool = typer.Option(
        False,
        "--full",
        help="Print full config including all fields.",
    ),
) -> None:
    """Validate the configuration file and print parsed values.

    Exits with code 1 if the config fails validation.
    """
    config = _load_config_or_exit(config_path)

    typer.echo("Configuration validated successfully.")
    typer.echo("")
    typer.echo(f"  Strong axis threshold: {config.score.strong_axis_threshold}")
    typer.echo(f"  Bonus per axis:        {config.score.bonus_per_axis}")
    typer.echo(f"  LLM endpoint:          {config.llm.base_url}")
    typer.echo(f"  LLM model:             {config.llm.model}")
    typer.echo(f"  API key ({config.llm.api_key_env}): "
               f"{'set' if config.llm.resolve_api_key() else 'NOT SET'}")
    typer.echo(f"  Concurrency:           {config.batch.concurrency}")
    typer.echo(f"  Max retries:           {config.batch.max_retries}")
    typer.echo(f"  Log level:             {config.logging.level}")
    typer.echo(f"  Debug mode:            {config.debug}")

    if show_full:
        typer.echo("")
        typer.echo("Full config (JSON):")
        typer.echo(json.dumps(config.model_dump(), indent=2, default=str))

    typer.echo("")
    typer.echo("[OK] Config is valid.")


@app.command("score")
def score(
    products_file: str = typer.Argument(..., help="JSON array of products."),
    top_n: Optional[int] = typer.Option(None, "--top", help="Show only the N best."),
    export_path: Optional[str] = typer.Option(
        None, "--export", help="Write the scores to a .csv or .json file."
    ),
    config_path: Optional[str] = typer.Option(None, "--config", help=_CONFIG_OPTION_HELP),
) -> None:
    """Compute the supplier-wide global score (0–100) of every product."""
    from gamme_advisor.reporting.export import flatten_scores_for_export
    from gamme_advisor.reporting.formatters import format_score_table
    from gamme_advisor.scoring.score_engine import compute_scores

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    products = _load_products_or_exit(products_file)

    compute_scores(products, config.score)

    typer.echo(format_score_table(products, top_n))
    _export(flatten_scores_for_export(products), export_path)
    typer.echo(f"[OK] Scored {len(products)} product(s).")


@app.command("profile")
def profile(
    products_file: str = typer.Argument(..., help="JSON array of products."),
    product_id: str = typer.Option(..., "--product", help="Product to profile."),
    config_path: Optional[str] = typer.Option(None, "--config", help=_CONFIG_OPTION_HELP),
) -> None:
    """Show the rayon decision and positioning sheet of one product."""
    from gamme_advisor.errors import EmptyCohortError
    from gamme_advisor.reporting.formatters import format_profile
    from gamme_advisor.scoring.context_profiler import build_profile
    from gamme_advisor.scoring.rayon_engine import analyze_rayon
    from gamme_advisor.scoring.score_engine import compute_scores

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    products = _load_products_or_exit(products_file)

    target = next((p for p in products if p.id == product_id), None)
    if target is None:
        typer.echo(f"[ERROR] Product '{product_id}' not found in {products_file}.", err=True)
        raise typer.Exit(code=1)

    compute_scores(products, config.score)
    rayon = [p for p in products if p.rayon_key == target.rayon_key]
    try:
        scoring = analyze_rayon(target, rayon)
        ctx = build_profile(target, products, scoring)
    except EmptyCohortError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(format_profile(ctx, scoring))


@app.command("categorize")
def categorize(
    products_file: str = typer.Argument(..., help="JSON array of products."),
    rayon_key: Optional[str] = typer.Option(
        None, "--rayon", help="Only categorize this rayon key (default: every rayon)."
    ),
    with_llm: bool = typer.Option(
        False, "--with-llm", help="Ask the model once per rayon for ambiguous products."
    ),
    export_path: Optional[str] = typer.Option(
        None, "--export", help="Write the categories to a .csv or .json file."
    ),
    config_path: Optional[str] = typer.Option(None, "--config", help=_CONFIG_OPTION_HELP),
) -> None:
    """Categorize products rayon by rayon with the deterministic ladder.

    Ladder decisions are final; with ``--with-llm`` the model only fills
    products the ladder leaves ambiguous.  Results are made consistent so
    that no product outranks a product that beats it on both global
    percentile and rayon weight.
    """
    from gamme_advisor.analysis.retry import RetryPolicy
    from gamme_advisor.analysis.service import BatchCategorizer
    from gamme_advisor.errors import LLMError
    from gamme_advisor.reporting.export import flatten_batch_for_export
    from gamme_advisor.reporting.formatters import format_batch_table
    from gamme_advisor.scoring.score_engine import compute_scores

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    products = _load_products_or_exit(products_file)
    compute_scores(products, config.score)

    rayons: dict[str, list] = {}
    for p in products:
        rayons.setdefault(p.rayon_key, []).append(p)
    if rayon_key is not None:
        if rayon_key not in rayons:
            typer.echo(f"[ERROR] Rayon '{rayon_key}' not found. "
                       f"Known: {', '.join(sorted(rayons))}", err=True)
            raise typer.Exit(code=1)
        rayons = {rayon_key: rayons[rayon_key]}

    client = _open_client_or_exit(config) if with_llm else None
    categorizer = BatchCategorizer(
        client=client,
        llm_config=config.llm,
        ladder_config=config.ladder,
        retry_policy=RetryPolicy.from_config(config.batch),
    )

    rows: list[dict] = []
    try:
        for key in sorted(rayons):
            members = rayons[key]
            name = members[0].rayon_label or key
            try:
                results = categorizer.categorize(name, members, products)
            except LLMError as exc:
                typer.echo(f"[ERROR] Rayon '{name}': {exc}", err=True)
                continue
            typer.echo(format_batch_table(name, results))
            rows.extend(flatten_batch_for_export(name, results))
    finally:
        if client is not None:
            client.close()

    _export(rows, export_path)
    typer.echo(f"[OK] Categorized {len(rows)} product(s) in {len(rayons)} rayon(s).")


@app.command("analyze")
def analyze(
    products_file: str = typer.Argument(..., help="JSON array of products."),
    product_ids: Optional[list[str]] = typer.Option(
        None, "--product", help="Product(s) to analyze (repeatable; default: all)."
    ),
    supplier_context: Optional[str] = typer.Option(
        None, "--supplier-context", help="Manager rule for this supplier, in plain words."
    ),
    prompt_style: str = typer.Option(
        "contextual", "--prompt", help="Prompt style: contextual | benchmark."
    ),
    export_path: Optional[str] = typer.Option(
        None, "--export", help="Write the results to a .csv or .json file."
    ),
    config_path: Optional[str] = typer.Option(None, "--config", help=_CONFIG_OPTION_HELP),
) -> None:
    """Ask the model for an A/C/Z recommendation per product.

    Runs at most ``batch.concurrency`` calls at once.  Items that fail are
    reported with status ``error``; the others still complete.
    """
    from gamme_advisor.analysis.retry import RetryPolicy
    from gamme_advisor.analysis.service import (
        PROMPT_BENCHMARK,
        PROMPT_CONTEXTUAL,
        BulkAnalyzer,
        ProductAnalyzer,
    )
    from gamme_advisor.reporting.export import flatten_bulk_for_export
    from gamme_advisor.reporting.formatters import format_bulk_summary
    from gamme_advisor.scoring.score_engine import compute_scores

    if prompt_style not in (PROMPT_CONTEXTUAL, PROMPT_BENCHMARK):
        typer.echo(f"[ERROR] Unknown prompt style '{prompt_style}'.", err=True)
        raise typer.Exit(code=1)

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    products = _load_products_or_exit(products_file)
    compute_scores(products, config.score)

    targets = products
    if product_ids:
        known = {p.id for p in products}
        missing = [pid for pid in product_ids if pid not in known]
        if missing:
            typer.echo(f"[ERROR] Unknown product(s): {', '.join(missing)}", err=True)
            raise typer.Exit(code=1)
        wanted = set(product_ids)
        targets = [p for p in products if p.id in wanted]

    with _open_client_or_exit(config) as client:
        analyzer = ProductAnalyzer(
            client,
            config.llm,
            RetryPolicy.from_config(config.batch),
            prompt_style=prompt_style,
        )
        report = BulkAnalyzer(analyzer, config.batch).run(
            targets, products, supplier_context=supplier_context
        )

    typer.echo(format_bulk_summary(report))
    _export(flatten_bulk_for_export(report), export_path)
    if report.error_count:
        typer.echo(f"[WARN] {report.error_count} product(s) failed.")
    typer.echo(f"[OK] Analyzed {report.ok_count} of {len(targets)} product(s).")


if __name__ == "__main__":
    app()
