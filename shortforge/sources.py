"""Clip collection, downloads, background music and scratch directories."""

import io
import logging
import random
import shutil
import uuid
import zipfile
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable, Sequence

import requests

from shortforge.jobs import CancellationToken
from shortforge.services import ClipSearch

logger = logging.getLogger(__name__)

DOWNLOAD_TIMEOUT = 60
CHUNK_SIZE = 1 << 16
MUSIC_SUFFIXES = {".mp3", ".wav", ".m4a", ".aac", ".ogg"}


class DownloadError(RuntimeError):
    """A clip or asset could not be fetched."""


def clean_dir(path: Path) -> Path:
    """Create *path* if needed and delete everything inside it."""
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    for entry in path.iterdir():
        if entry.is_dir() and not entry.is_symlink():
            shutil.rmtree(entry)
        else:
            entry.unlink()
    logger.debug("cleaned %s", path)
    return path


def collect_clip_urls(
    search: ClipSearch,
    terms: Iterable[str],
    limit: int = 15,
    min_duration: int = 10,
    token: CancellationToken | None = None,
) -> list[str]:
    """Pick the first not-yet-chosen result for every search term."""
    urls: list[str] = []
    for term in terms:
        if token is not None:
            token.raise_if_cancelled(f"search '{term}'")
        found = search.search(term, limit, min_duration)
        for url in found:
            if url not in urls:
                urls.append(url)
                break
        else:
            logger.warning("no new clip found for search term %r", term)
    return urls


def download_clip(url: str, directory: Path, session: requests.Session | None = None) -> Path:
    """Save one clip under *directory* with a random name.

    ``http(s)`` URLs are streamed to disk; anything else is treated as a local
    path and copied.
    """
    directory = Path(directory)
    target = directory / f"{uuid.uuid4()}.mp4"

    if not url.startswith(("http://", "https://")):
        source = Path(url)
        if not source.is_file():
            raise DownloadError(f"no such clip: {url}")
        shutil.copyfile(source, target)
        return target

    http = session or requests
    try:
        with http.get(url, stream=True, timeout=DOWNLOAD_TIMEOUT) as response:
            response.raise_for_status()
            with target.open("wb") as fh:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    fh.write(chunk)
    except requests.RequestException as e:
        target.unlink(missing_ok=True)
        raise DownloadError(f"could not download {url}: {e}") from e
    return target


def download_clips(
    urls: Sequence[str],
    directory: Path,
    max_workers: int = 4,
    token: CancellationToken | None = None,
) -> list[Path]:
    """Download *urls* concurrently, keeping the input order.

    Clips that fail to download are logged and left out.
    """

    def fetch(url: str) -> Path:
        if token is not None:
            token.raise_if_cancelled(f"download {url}")
        return download_clip(url, directory)

    logger.info("downloading %d clips", len(urls))
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = [pool.submit(fetch, url) for url in urls]

    paths: list[Path] = []
    for url, future in zip(urls, futures):
        try:
            paths.append(future.result())
        except DownloadError as e:
            logger.error("skipping clip: %s", e)
    if token is not None:
        token.raise_if_cancelled("downloads")
    return paths


def fetch_songs(zip_url: str, music_dir: Path) -> list[Path]:
    """Download a zip of background tracks and unpack it into *music_dir*."""
    music_dir = Path(music_dir)
    music_dir.mkdir(parents=True, exist_ok=True)
    logger.info("fetching songs from %s", zip_url)
    try:
        response = requests.get(zip_url, timeout=DOWNLOAD_TIMEOUT)
        response.raise_for_status()
    except requests.RequestException as e:
        raise DownloadError(f"could not download songs: {e}") from e

    try:
        with zipfile.ZipFile(io.BytesIO(response.content)) as archive:
            archive.extractall(music_dir)
    except zipfile.BadZipFile as e:
        raise DownloadError(f"songs archive is not a zip file: {e}") from e
    return list_songs(music_dir)


def list_songs(music_dir: Path) -> list[Path]:
    music_dir = Path(music_dir)
    if not music_dir.is_dir():
        return []
    return sorted(p for p in music_dir.rglob("*") if p.suffix.lower() in MUSIC_SUFFIXES)


def choose_song(music_dir: Path) -> Path:
    songs = list_songs(music_dir)
    if not songs:
        raise FileNotFoundError(f"no songs found in {music_dir}")
    song = random.choice(songs)
    logger.info("chose song %s", song.name)
    return song
