"""Chunk naming and slicing rules shared by the uploader and the worker."""

import math
import posixpath
import re
from collections.abc import Iterator

DEFAULT_CHUNK_SIZE = 4 * 1024 * 1024
MANIFEST_NAME = "manifest.json"

_CHUNK_NAME = re.compile(r"^chunk-\d{5}\.webm$")


def chunk_object_name(prefix: str, index: int) -> str:
    """Returns ``{prefix}/chunk-{index:05d}.webm``."""
    return f"{prefix}/chunk-{index:05d}.webm"


def manifest_object_name(prefix: str) -> str:
    return f"{prefix}/{MANIFEST_NAME}"


def chunk_count(size: int, chunk_size: int) -> int:
    """Number of chunks needed to cover ``size`` bytes."""
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    return math.ceil(size / chunk_size)


def iter_chunks(data: bytes, chunk_size: int) -> Iterator[tuple[int, bytes]]:
    """Yields ``(index, payload)`` for each exact byte range, in order."""
    for index in range(chunk_count(len(data), chunk_size)):
        start = index * chunk_size
        yield index, data[start : start + chunk_size]


def is_chunk_object(object_name: str) -> bool:
    """True for names following the chunk convention (basename only is checked)."""
    return bool(_CHUNK_NAME.match(posixpath.basename(object_name)))


def select_chunks(object_names: list[str]) -> list[str]:
    """Keeps chunk objects and orders them by their zero-padded index."""
    return sorted(name for name in object_names if is_chunk_object(name))


def correlation_id(prefix: str) -> str:
    """Last path segment of a prefix (``recordings/req_123`` -> ``req_123``)."""
    return prefix.rstrip("/").rsplit("/", 1)[-1]
