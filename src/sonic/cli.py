"""CLI for sonic using Typer and Rich.

Thin shell over the async clients: loads configuration, builds the clients
and prints results as text or JSON.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import asdict
from enum import StrEnum
from pathlib import Path
from typing import Annotated, Any

import httpx
import typer
from rich.console import Console

from sonic.acoustid import AcoustIDClient
from sonic.config import Config
from sonic.console import (
    print as cprint,
)
from sonic.console import (
    print_error,
    print_success,
    print_warning,
    set_console,
    status,
)
from sonic.fingerprint import FingerprintError, FingerprintResult, calculate_fingerprint
from sonic.models import AudioAsset, MatchResult
from sonic.primary import PrimaryClient
from sonic.recognizer import Recognizer
from sonic.safe_logging import configure_rich_logging
from sonic.spotify import SpotifyClient
from sonic.transport import TransportError

logger = logging.getLogger(__name__)


class OutputFormat(StrEnum):
    """Output format for CLI commands."""

    TEXT = "text"
    JSON = "json"


class ExitCode:
    """Standard exit codes for CLI commands."""

    SUCCESS = 0
    ERROR = 1
    NO_RESULTS = 2


app = typer.Typer(
    name="sonic",
    help="Sonic: identify audio against a fingerprint service, AcoustID and Spotify",
    no_args_is_help=True,
    add_completion=False,
)


class AppState:
    """Global application state passed between commands."""

    config: Config
    output_format: OutputFormat
    verbose: int


state = AppState()


def _http_client(timeout_s: float) -> httpx.AsyncClient:
    """Create the AsyncClient each service client sends through."""
    return httpx.AsyncClient(timeout=timeout_s)


@asynccontextmanager
async def _primary() -> AsyncIterator[PrimaryClient]:
    cfg = state.config.primary
    async with PrimaryClient(cfg.base_url, client=_http_client(cfg.timeout_s)) as client:
        yield client


@asynccontextmanager
async def _recognizer(with_lookup: bool = False) -> AsyncIterator[Recognizer]:
    cfg = state.config
    acoustid: AcoustIDClient | None = None
    if with_lookup and cfg.acoustid.api_key:
        acoustid = AcoustIDClient(
            cfg.acoustid.api_key,
            base_url=cfg.acoustid.base_url,
            client=_http_client(cfg.acoustid.timeout_s),
        )

    async with (
        _primary() as primary,
        SpotifyClient(
            cfg.catalog.client_credential,
            base_url=cfg.catalog.base_url,
            client=_http_client(cfg.catalog.timeout_s),
        ) as catalog,
    ):
        try:
            yield Recognizer(
                primary,
                catalog,
                lookup=acoustid,
                enrichment_threshold=cfg.recognition.enrichment_threshold,
            )
        finally:
            if acoustid is not None:
                await acoustid.close()


def _emit_json(data: Any) -> None:
    typer.echo(json.dumps(data, indent=2, ensure_ascii=False))


def _fail(message: str) -> typer.Exit:
    print_error(message)
    return typer.Exit(code=ExitCode.ERROR)


def _fingerprint(path: Path) -> FingerprintResult:
    try:
        return calculate_fingerprint(path)
    except FingerprintError as e:
        raise _fail(str(e)) from e


def _print_match(result: MatchResult) -> None:
    if not result.song_name:
        print_warning(result.message or "No match found")
        return

    confidence = f"{result.confidence:.2f}" if result.confidence is not None else "n/a"
    print_success(f"{result.song_name} (confidence {confidence}, source {result.source.value})")
    if result.message:
        cprint(f"  {result.message}")
    if result.algorithm_label:
        cprint(f"  algorithm: {result.algorithm_label}")
    if result.metadata:
        meta = result.metadata
        cprint(f"  artist: {meta.artist}")
        cprint(f"  album: {meta.album}")
        if meta.spotify_url:
            cprint(f"  spotify: {meta.spotify_url}")
        if meta.preview_url:
            cprint(f"  preview: {meta.preview_url}")


@app.callback()
def main(
    config_path: Annotated[
        Path | None,
        typer.Option("--config", help="Path to configuration TOML file", exists=True),
    ] = None,
    primary_url: Annotated[
        str | None, typer.Option(help="Base URL of the primary matching service")
    ] = None,
    custom: Annotated[
        bool | None,
        typer.Option("--custom/--standard", help="Use the custom-algorithm endpoints"),
    ] = None,
    output: Annotated[
        OutputFormat,
        typer.Option("--output", "-o", help="Output format"),
    ] = OutputFormat.TEXT,
    verbose: Annotated[
        int,
        typer.Option("--verbose", "-v", count=True, help="Increase verbosity"),
    ] = 0,
) -> None:
    """Sonic: audio identification client."""
    # Load config (TOML + env vars)
    cfg = Config.load(config_path)

    # CLI > Env > Config File > Defaults
    if primary_url:
        cfg.primary.base_url = primary_url
    if custom is not None:
        cfg.recognition.use_custom_algorithm = custom

    if verbose > 0:
        log_level = logging.DEBUG if verbose >= 2 else logging.INFO
    else:
        log_level = getattr(logging, cfg.logging.level.upper(), logging.WARNING)

    configure_rich_logging(
        level=log_level, fmt=cfg.logging.format, hash_paths=cfg.logging.hash_paths
    )
    set_console(Console())

    # Suppress external library logging unless very verbose (-vvv)
    if verbose < 3:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)

    if config_path:
        logger.info("Loaded config from %s", config_path)

    state.config = cfg
    state.output_format = output
    state.verbose = verbose


# ====================================================================
# COMMANDS
# ====================================================================


@app.command()
def register(
    audio_file: Annotated[Path, typer.Argument(help="Audio file to register", exists=True)],
    name: Annotated[
        str | None, typer.Option("--name", "-n", help="Song name (defaults to file stem)")
    ] = None,
) -> None:
    """Register a song with the primary service."""
    song_name = name or audio_file.stem
    asset = AudioAsset.from_path(audio_file)

    async def _run():
        async with _primary() as primary:
            return await primary.register(
                asset, song_name, state.config.recognition.use_custom_algorithm
            )

    try:
        with status(f"Registering {song_name}..."):
            result = asyncio.run(_run())
    except TransportError as e:
        raise _fail(f"Registration failed: {e.reason}") from e

    if state.output_format == OutputFormat.JSON:
        _emit_json(result.to_dict())
        return

    print_success(f"Registered {result.song_name}: {result.hash_count} hashes")
    cprint(f"  algorithm: {result.algorithm_label}")
    if result.algorithm_details:
        cprint(f"  {result.algorithm_details}")


@app.command()
def recognize(
    audio_file: Annotated[Path, typer.Argument(help="Audio file to identify", exists=True)],
    fallback: Annotated[
        bool,
        typer.Option(help="Fall back to AcoustID (needs fpcalc) when the match is weak"),
    ] = False,
) -> None:
    """Identify a song and enrich a confident match with Spotify metadata."""
    asset = AudioAsset.from_path(audio_file)
    use_custom = state.config.recognition.use_custom_algorithm

    fingerprint: FingerprintResult | None = None
    if fallback:
        if not state.config.acoustid.api_key:
            raise _fail("--fallback needs an AcoustID API key (set ACOUSTID_API_KEY)")
        fingerprint = _fingerprint(audio_file)

    async def _run():
        async with _recognizer(with_lookup=fallback) as recognizer:
            if fallback:
                return await recognizer.identify(asset, fingerprint, use_custom)
            return await recognizer.recognize_and_enrich(asset, use_custom)

    logger.info("Recognizing %s", audio_file)
    try:
        with status("Recognizing..."):
            result = asyncio.run(_run())
    except TransportError as e:
        raise _fail(f"Recognition failed: {e.reason}") from e

    if state.output_format == OutputFormat.JSON:
        _emit_json(result.to_dict())
    else:
        _print_match(result)

    if not result.song_name:
        raise typer.Exit(code=ExitCode.NO_RESULTS)


@app.command()
def lookup(
    audio_file: Annotated[Path, typer.Argument(help="Audio file to fingerprint", exists=True)],
) -> None:
    """Look up a file on AcoustID by its Chromaprint fingerprint."""
    cfg = state.config.acoustid
    if not cfg.api_key:
        raise _fail("AcoustID API key required (set ACOUSTID_API_KEY)")
    api_key = cfg.api_key

    fingerprint = _fingerprint(audio_file)

    async def _run():
        async with AcoustIDClient(
            api_key,
            base_url=cfg.base_url,
            client=_http_client(cfg.timeout_s),
        ) as client:
            return await client.lookup(fingerprint.fingerprint, fingerprint.duration_sec)

    with status("Querying AcoustID..."):
        candidates = asyncio.run(_run())

    if state.output_format == OutputFormat.JSON:
        _emit_json([asdict(c) for c in candidates])
    else:
        for candidate in candidates:
            cprint(f"[bold]{candidate.id}[/bold] score {candidate.score:.2f}")
            for rec in candidate.recordings:
                artists = rec.artist_names or "Unknown"
                cprint(f"  {rec.title} - {artists} ({rec.id})")

    if not candidates:
        print_warning("No AcoustID candidates")
        raise typer.Exit(code=ExitCode.NO_RESULTS)


@app.command()
def songs() -> None:
    """List songs registered with the primary service."""

    async def _run():
        async with _primary() as primary:
            return await primary.list_songs()

    try:
        names = asyncio.run(_run())
    except TransportError as e:
        raise _fail(f"Listing songs failed: {e.reason}") from e

    if state.output_format == OutputFormat.JSON:
        _emit_json(names)
        return

    if not names:
        print_warning("No songs registered")
        return
    for song_name in names:
        cprint(song_name)


@app.command()
def delete(
    name: Annotated[str, typer.Argument(help="Registered song name")],
) -> None:
    """Delete a registered song."""

    async def _run():
        async with _primary() as primary:
            await primary.delete_song(name)

    try:
        asyncio.run(_run())
    except TransportError as e:
        raise _fail(f"Delete failed: {e.reason}") from e

    if state.output_format == OutputFormat.JSON:
        _emit_json({"song_name": name, "deleted": True})
    else:
        print_success(f"Deleted {name}")


@app.command()
def health() -> None:
    """Check that the primary service is up."""

    async def _run():
        async with _primary() as primary:
            return await primary.check_health()

    healthy = asyncio.run(_run())

    if state.output_format == OutputFormat.JSON:
        _emit_json({"healthy": healthy, "base_url": state.config.primary.base_url})
    elif healthy:
        print_success(f"{state.config.primary.base_url} is healthy")
    else:
        print_error(f"{state.config.primary.base_url} is unreachable")

    if not healthy:
        raise typer.Exit(code=ExitCode.ERROR)
