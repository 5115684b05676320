from __future__ import annotations

import hashlib
import logging
from pathlib import Path
from typing import Optional

import requests
from tqdm import tqdm


def sha256_file(path: Path) -> str:
    hasher = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(1024 * 1024), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def download_file(
    url: str,
    destination: Path,
    expected_sha256: Optional[str] = None,
    chunk_size: int = 1024 * 1024,
) -> Path:
    """
    Stream a model file to ``destination``, optionally verifying its SHA-256.

    The payload is written next to the destination first and moved into
    place once complete, so an interrupted download never leaves a
    truncated model behind.
    """

    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)

    if destination.exists() and expected_sha256:
        if sha256_file(destination) == expected_sha256.lower():
            return destination

    logging.info("Downloading %s to %s", url, destination)
    tmp_path = destination.with_suffix(destination.suffix + ".part")

    with requests.get(url, stream=True, timeout=60) as response:
        response.raise_for_status()
        total = int(response.headers.get("content-length", 0)) or None
        with tmp_path.open("wb") as handle, tqdm(
            total=total,
            unit="B",
            unit_scale=True,
            desc=f"Downloading {destination.name}",
        ) as progress:
            for chunk in response.iter_content(chunk_size=chunk_size):
                if not chunk:
                    continue
                handle.write(chunk)
                progress.update(len(chunk))

    if expected_sha256 and sha256_file(tmp_path) != expected_sha256.lower():
        tmp_path.unlink(missing_ok=True)
        raise ValueError(f"Checksum mismatch for {destination}. Expected {expected_sha256}.")

    tmp_path.replace(destination)
    return destination
