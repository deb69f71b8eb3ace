from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import typer

from anyls.config import AnyLsConfig, load_config
from anyls.definitions import DefinitionIndex
from anyls.documents import aggregate_diagnostics
from anyls.exceptions import ConfigError, ProviderError
from anyls.hover import render_definitions
from anyls.log import configure_logging
from anyls.providers.just import FILETYPES as JUST_FILETYPES
from anyls.providers.registry import probe_providers
from anyls.schema import CheckResponseDTO, DefinitionDTO, DiagnosticDTO

app = typer.Typer(add_completion=False)

_JUSTFILE_NAMES = {"justfile", ".justfile"}


@dataclass(frozen=True)
class CliSettings:
    root: Path
    config: AnyLsConfig


def _settings(ctx: typer.Context) -> CliSettings:
    settings = ctx.obj
    if not isinstance(settings, CliSettings):
        raise typer.Exit(code=2)
    return settings


def guess_filetype(path: Path) -> str:
    if path.name.lower() in _JUSTFILE_NAMES:
        return "just"
    suffix = path.suffix.lstrip(".").lower()
    if suffix in JUST_FILETYPES:
        return "just"
    return suffix or path.name.lstrip(".").lower()


def wants_logging(
    serving: bool, verbose: int, log_file: Optional[Path], log_level: Optional[str]
) -> bool:
    # One-shot commands stay quiet on stderr unless asked.
    return serving or bool(verbose) or log_file is not None or bool(log_level)


def _serve(settings: CliSettings) -> None:
    from anyls import server

    server.start(settings.root, settings.config)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0, "--verbose", "-v", count=True, help="Increase logging verbosity (repeatable)."
    ),
    root: Path = typer.Option(Path("."), "--root", help="Directory definitions are discovered from."),
    config: Optional[Path] = typer.Option(None, "--config", help="Path to anyls.toml."),
    log_file: Optional[Path] = typer.Option(None, "--log-file"),
    lsp: bool = typer.Option(False, "--lsp", help="Start the language server on stdio."),
) -> None:
    """Language server for justfiles and .env definitions."""
    try:
        loaded = load_config(root=root, config_path=config)
    except ConfigError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=2)
    if log_file is None and loaded.server.log_file:
        log_file = Path(loaded.server.log_file).expanduser()
    serving = lsp or ctx.invoked_subcommand == "lsp"
    if wants_logging(serving, verbose, log_file, loaded.server.log_level):
        configure_logging(verbose, log_file, loaded.server.log_level)
    ctx.obj = CliSettings(root=root.resolve(), config=loaded)
    if lsp:
        _serve(ctx.obj)
        raise typer.Exit()
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(code=2)


@app.command("lsp")
def lsp_command(ctx: typer.Context) -> None:
    """Start the language server on stdio."""
    _serve(_settings(ctx))


@app.command("check")
def check(
    ctx: typer.Context,
    path: Path = typer.Argument(..., help="File to diagnose."),
    filetype: Optional[str] = typer.Option(None, "--filetype", help="Language id override."),
    json_output: bool = typer.Option(False, "--json"),
) -> None:
    """Run every matching provider over PATH once and print its diagnostics."""
    settings = _settings(ctx)
    language_id = filetype or guess_filetype(path)
    try:
        contents = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        typer.echo(f"{path}: {exc}", err=True)
        raise typer.Exit(code=2)

    registry = probe_providers(settings.root, settings.config)
    providers = registry.providers_for(language_id)
    response = CheckResponseDTO(
        path=str(path),
        filetype=language_id,
        providers=[provider.kind.value for provider in providers],
    )
    try:
        if not providers:
            response.errors.append(f"No provider for filetype: {language_id}")
            response.exit_code = 2
        else:
            try:
                diagnostics = aggregate_diagnostics(providers, contents)
            except ProviderError as exc:
                response.errors.append(str(exc))
                response.exit_code = 2
            else:
                response.diagnostics = [DiagnosticDTO.from_diagnostic(d) for d in diagnostics]
                response.exit_code = 1 if diagnostics else 0
    finally:
        registry.close()

    if json_output:
        typer.echo(json.dumps(response.model_dump(), indent=2, sort_keys=True))
    else:
        for diagnostic in response.diagnostics:
            typer.echo(
                f"{path}:{diagnostic.start_line + 1}:{diagnostic.start_col + 1}: "
                f"{diagnostic.severity}: {diagnostic.message}"
            )
        for error in response.errors:
            typer.echo(error, err=True)
    raise typer.Exit(code=response.exit_code)


@app.command("definitions")
def definitions(
    ctx: typer.Context,
    name: Optional[str] = typer.Argument(None, help="Only show this name."),
    json_output: bool = typer.Option(False, "--json"),
) -> None:
    """Print the definitions discovered from the root directory."""
    settings = _settings(ctx)
    index = DefinitionIndex.build(
        settings.root, max_depth=settings.config.definitions.max_depth
    )
    if name is None:
        entries = [definition for key in index.names() for definition in index.lookup(key)]
    else:
        entries = list(index.lookup(name))
        if not entries:
            typer.echo(f"No definition for {name}", err=True)
            raise typer.Exit(code=1)
    if json_output:
        payload = [DefinitionDTO.from_definition(entry).model_dump() for entry in entries]
        typer.echo(json.dumps(payload, indent=2))
    elif entries:
        typer.echo(render_definitions(entries))
