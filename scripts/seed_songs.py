"""
Seed script for the Song Catalog service.

Generates deterministic pseudo-random songs, optionally writes them to CSV and
loads them through the catalog service into the configured backend, so ids
are assigned exactly as they would be over HTTP.
"""

from __future__ import annotations

import asyncio
import csv
import random
import sys
import time
from pathlib import Path

import typer

from song_catalog.config import Settings, get_settings
from song_catalog.core.dirty import DirtyTracker
from song_catalog.core.service import CatalogService
from song_catalog.domain.models import NewSong
from song_catalog.persistence import available_backends, build_store

app = typer.Typer(help="Generate synthetic songs and load them into the catalog.")

_ADJECTIVES = ["Blue", "Electric", "Silent", "Golden", "Broken", "Midnight", "Wild", "Paper"]
_NOUNS = ["River", "Heart", "Highway", "Moon", "Garden", "Signal", "Parade", "Window"]
_ARTISTS = [
    "The Beatles",
    "Nina Simone",
    "Radiohead",
    "Daft Punk",
    "Miles Davis",
    "Fleetwood Mac",
    "Kraftwerk",
    "Aretha Franklin",
]
_GENRES = ["Rock", "Jazz", "Electronic", "Soul", "Pop", "Folk"]


def _generate_songs(count: int, seed: int) -> list[NewSong]:
    rng = random.Random(seed)
    return [
        NewSong(
            title=f"{rng.choice(_ADJECTIVES)} {rng.choice(_NOUNS)}",
            artist=rng.choice(_ARTISTS),
            genre=rng.choice(_GENRES),
        )
        for _ in range(count)
    ]


def _write_csv(csv_path: Path, songs: list[NewSong]) -> None:
    with csv_path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(["title", "artist", "genre"])
        writer.writerows([song.title, song.artist, song.genre] for song in songs)


async def _load(settings: Settings, songs: list[NewSong]) -> int:
    store = await build_store(settings)
    try:
        service = CatalogService(store, DirtyTracker(), flush_policy="buffered")
        for song in songs:
            await service.create(song)
        # One flush for the whole batch; the tracker was only used as a marker.
        if service.tracker.take_if_dirty():
            await store.flush()
        return await store.count()
    finally:
        await store.close()


@app.command()
def main(
    count: int = typer.Option(
        100,
        "--count",
        "-n",
        help="Number of songs to generate.",
    ),
    seed: int = typer.Option(
        42,
        "--seed",
        help="Deterministic RNG seed.",
    ),
    backend: str | None = typer.Option(
        None,
        "--backend",
        "-b",
        help="Backend override (e.g., lmdb, postgres).",
    ),
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Optional CSV output path.",
    ),
    no_load: bool = typer.Option(
        False,
        "--no-load",
        help="Only generate (and optionally write CSV); skip loading.",
    ),
) -> None:
    """
    Generate synthetic songs and optionally load them into the catalog.
    """
    settings = get_settings()
    if backend is not None:
        if backend not in available_backends():
            raise typer.BadParameter(f"Unknown backend '{backend}'", param_hint="--backend")
        settings = settings.model_copy(update={"backend": backend})

    start = time.perf_counter()
    songs = _generate_songs(count, seed)
    typer.echo(f"Generated {count:,} songs (seed={seed})")

    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        _write_csv(output, songs)
        typer.echo(f"CSV written to {output}")

    if no_load:
        typer.echo("Skipping load (no-load flag set).")
        return

    total = asyncio.run(_load(settings, songs))
    duration = time.perf_counter() - start
    typer.echo(
        f"Loaded into backend={settings.backend} in {duration:.2f}s; catalog now holds {total:,} songs."
    )


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
