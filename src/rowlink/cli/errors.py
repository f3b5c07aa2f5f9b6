"""rowlink rich error messages — actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from rowlink.cli.errors import err_no_api_key
    console.print(err_no_api_key("openai", "OPENAI_API_KEY"))
    raise typer.Exit(1)
"""

from __future__ import annotations


def err_no_api_key(provider: str, env_var: str) -> str:
    """No API key for *provider*.

    Example:
        No API key for 'openai'. Set:  export ROWLINK_EMBEDDING_API_KEY=...
    """
    return (
        f"[red]Error:[/] No API key for '{provider}'.\n"
        f"  Set:  export ROWLINK_EMBEDDING_API_KEY=...\n"
        f"  or:   export {env_var}=..."
    )


def err_no_db(db_path: str = ".rowlink.db") -> str:
    """No store found at the configured path."""
    return (
        f"[red]Error:[/] No database found at '{db_path}'.\n"
        "  Run:  rowlink init"
    )


def err_config(message: str) -> str:
    """rowlink.yaml / ROWLINK_* value rejected by the loader."""
    return (
        f"[red]Error:[/] Invalid configuration.\n"
        f"  {message}\n"
        "  Fix rowlink.yaml or the ROWLINK_* environment variable and retry."
    )


def err_embedding_model_mismatch(
    db_model: str, db_dims: int, config_model: str, config_dims: int
) -> str:
    """Embedding model stored in the DB does not match current config."""
    return (
        f"[red]Error:[/] Embedding model mismatch.\n"
        f"  Database uses:  {db_model} ({db_dims} dims)\n"
        f"  Config has:     {config_model} ({config_dims} dims)\n"
        "  Use a fresh --db or set embedding.model / embedding.dimensions to match the database."
    )


def err_files_need_kind() -> str:
    """--file given without choosing which dataset it belongs to."""
    return (
        "[red]Error:[/] --file needs a dataset kind.\n"
        "  Run:  rowlink ingest --kind sources --file PATH  (or --kind targets)"
    )


def err_match_failed(exc: BaseException) -> str:
    """Store round-trip failed during matching; the run is aborted."""
    return (
        f"[red]Error:[/] Matching aborted: {exc}\n"
        "  Matches recorded so far are kept. Fix the store and rerun:  rowlink match"
    )


def warn_missing_file(label: str, path: str) -> str:
    return f"[{label}] [yellow]File {path} does not exist, skipping[/]"


def warn_missing_value_column(label: str, path: str, column: str) -> str:
    """Value column absent, so every row of the file is invalid."""
    return (
        f"[{label}] [yellow]⚠ Column '{column}' not found in {path}; "
        "no rows can be embedded.[/]\n"
        f"  Set ingest.{label.lower()}.value_column in rowlink.yaml to an existing column."
    )


def warn_quarantined(label: str, rows: int, csv_path: str, log_path: str) -> str:
    """Shown after a file with failed batches."""
    return (
        f"[{label}] [yellow]⚠ {rows} rows quarantined[/]\n"
        f"  Rows:  {csv_path}\n"
        f"  Log:   {log_path}\n"
        "  Fix the cause and re-ingest the quarantined CSV:\n"
        f"    rowlink ingest --kind {label.lower()} --skip-rows 0 --file {csv_path}"
    )


def warn_read_failed(label: str, path: str, error: str) -> str:
    """File could not be decoded or parsed; reading stopped at the error."""
    return (
        f"[{label}] [red]✗ Could not read {path}:[/] {error}\n"
        "  Rows before the error were processed; the rest of the file was not.\n"
        "  Save the file as UTF-8 CSV with balanced quotes and re-ingest it."
    )
