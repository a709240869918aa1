# ─────────────────────────────────────────────────────────────────────
# SafeIntel — Knowledge Index Format & Loader
# (C) 1998-2026 Miroslav Sotek. All rights reserved.
# License: GNU AGPL v3 | Commercial licensing available
# ─────────────────────────────────────────────────────────────────────
"""
On-disk knowledge index: a JSON sidecar plus a flat float32 buffer.

``kb.meta.json``::

    {"dim": 1536, "count": 2, "items": [{"id", "text", "meta"}, ...],
     "build_id": "...", "vectors": "kb.vec.<build_id>.bin",
     "checksum": "...", "model": "...", "created_at": ...}

``kb.vec.<build_id>.bin`` holds ``count × dim`` little-endian float32
values, one unit-normalized vector per item, in ``items`` order.

Each build writes its own vector file; renaming the sidecar into place
publishes it, so a reader always gets a sidecar with its own buffer.
The sidecar also records a BLAKE2b checksum of the buffer, which
catches files swapped or damaged by hand.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import threading
import time
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np

from .exceptions import ConfigError, IndexCorruptionError
from .types import Fact

logger = logging.getLogger("SafeIntel.IndexStore")

SIDECAR_NAME = "kb.meta.json"
VECTORS_PREFIX = "kb.vec."
VECTORS_SUFFIX = ".bin"
READ_ATTEMPTS = 3
VECTOR_DTYPE = np.dtype("<f4")


@dataclass(frozen=True)
class KnowledgeIndex:
    """Facts aligned 1:1 with rows of a read-only ``(count, dim)`` matrix."""

    dim: int
    facts: tuple[Fact, ...]
    vectors: np.ndarray = field(compare=False)
    build_id: str = ""
    model: str = ""
    _positions: dict[str, int] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.vectors.shape != (len(self.facts), self.dim):
            raise IndexCorruptionError(
                f"Vector matrix shape {self.vectors.shape} does not match "
                f"{len(self.facts)} items × {self.dim} dims"
            )
        object.__setattr__(
            self, "_positions", {f.id: i for i, f in enumerate(self.facts)}
        )

    @property
    def count(self) -> int:
        return len(self.facts)

    def position_of(self, fact_id: str) -> int | None:
        return self._positions.get(fact_id)

    def vector(self, position: int) -> np.ndarray:
        return self.vectors[position]

    def sample(self, n: int = 3) -> list[dict]:
        return [f.to_dict() for f in self.facts[:n]]


def buffer_checksum(buf: bytes) -> str:
    h = hashlib.blake2b(digest_size=16)
    h.update(buf)
    return h.hexdigest()


def vectors_name(build_id: str) -> str:
    """File name of the vector buffer belonging to *build_id*."""
    return f"{VECTORS_PREFIX}{build_id}{VECTORS_SUFFIX}"


def vectors_path(directory: str | Path) -> Path:
    """Path of the vector buffer the published sidecar points at."""
    root = Path(directory)
    return root / _vectors_file(_read_sidecar(root / SIDECAR_NAME))


def _write_file(path: Path, data: bytes) -> None:
    with open(path, "wb") as f:
        f.write(data)
        f.flush()
        os.fsync(f.fileno())


def _prune_vectors(directory: Path, keep: str) -> None:
    for path in directory.glob(f"{VECTORS_PREFIX}*{VECTORS_SUFFIX}"):
        if path.name != keep:
            path.unlink(missing_ok=True)
            logger.debug("Removed superseded vector file %s", path)


def write_index(
    directory: str | Path,
    facts: Sequence[Fact],
    vectors: np.ndarray,
    model: str = "",
) -> KnowledgeIndex:
    """Persist *facts* and their unit vectors atomically.

    The buffer is stored under a build-specific name that only the new
    sidecar refers to, so renaming the sidecar into place is the single
    step that publishes a build.  Readers see either the previous pair
    or the new one.  Vector files of earlier builds are removed last.

    Raises ``IndexCorruptionError`` if the matrix does not line up with
    the fact list; nothing is written in that case.
    """
    matrix = np.ascontiguousarray(vectors, dtype=VECTOR_DTYPE)
    if matrix.ndim != 2 or matrix.shape[0] != len(facts):
        raise IndexCorruptionError(
            f"Refusing to write {len(facts)} items with vectors of shape {matrix.shape}"
        )
    count, dim = matrix.shape
    buf = matrix.tobytes()
    build_id = uuid.uuid4().hex
    bin_name = vectors_name(build_id)

    sidecar = {
        "dim": int(dim),
        "count": int(count),
        "items": [f.to_dict() for f in facts],
        "build_id": build_id,
        "vectors": bin_name,
        "checksum": buffer_checksum(buf),
        "model": model,
        "created_at": time.time(),
    }

    out = Path(directory)
    out.mkdir(parents=True, exist_ok=True)
    bin_path = out / bin_name
    meta_path = out / SIDECAR_NAME
    tmp_bin = out / f".{bin_name}.tmp"
    tmp_meta = out / f".{SIDECAR_NAME}.{build_id}.tmp"

    published = False
    try:
        _write_file(tmp_bin, buf)
        _write_file(tmp_meta, json.dumps(sidecar).encode("utf-8"))
        # Not referenced by any sidecar yet, so invisible to readers.
        os.replace(tmp_bin, bin_path)
        os.replace(tmp_meta, meta_path)
        published = True
    finally:
        leftovers = [tmp_bin, tmp_meta] if published else [tmp_bin, tmp_meta, bin_path]
        for path in leftovers:
            path.unlink(missing_ok=True)

    _prune_vectors(out, keep=bin_name)

    logger.info(
        "Wrote %s (%.1f MB) and %s: %d vectors × %d dims (build %s)",
        bin_path,
        len(buf) / 1e6,
        meta_path,
        count,
        dim,
        build_id,
    )
    return KnowledgeIndex(
        dim=int(dim),
        facts=tuple(facts),
        vectors=np.frombuffer(buf, dtype=VECTOR_DTYPE).reshape(count, dim),
        build_id=build_id,
        model=model,
    )


def _read_sidecar(meta_path: Path) -> dict:
    if not meta_path.is_file():
        raise ConfigError(f"Index file not found: {meta_path}")
    try:
        sidecar = json.loads(meta_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise IndexCorruptionError(f"Unreadable index sidecar {meta_path}: {exc}") from exc
    if not isinstance(sidecar, dict):
        raise IndexCorruptionError(f"Unreadable index sidecar {meta_path}: not an object")
    return sidecar


def _vectors_file(sidecar: dict) -> str:
    name = sidecar.get("vectors")
    if not isinstance(name, str) or not name or Path(name).name != name:
        raise IndexCorruptionError(f"Sidecar names no usable vector file: {name!r}")
    return name


def read_index(directory: str | Path) -> KnowledgeIndex:
    """Read and validate an index from *directory*.

    If the vector file named by the sidecar has already been pruned by
    a newer build, the sidecar is read again and the newer pair is used.
    """
    root = Path(directory)
    meta_path = root / SIDECAR_NAME

    sidecar = _read_sidecar(meta_path)
    for attempt in range(1, READ_ATTEMPTS + 1):
        bin_path = root / _vectors_file(sidecar)
        try:
            raw = bin_path.read_bytes()
            break
        except FileNotFoundError:
            fresh = _read_sidecar(meta_path)
            if attempt == READ_ATTEMPTS or fresh.get("build_id") == sidecar.get("build_id"):
                raise ConfigError(f"Index file not found: {bin_path}") from None
            logger.info(
                "Build %s was superseded while loading; reading build %s",
                sidecar.get("build_id", "?"),
                fresh.get("build_id", "?"),
            )
            sidecar = fresh

    try:
        dim = int(sidecar["dim"])
        count = int(sidecar["count"])
        items = sidecar["items"]
    except (KeyError, TypeError, ValueError) as exc:
        raise IndexCorruptionError(f"Unreadable index sidecar {meta_path}: {exc}") from exc

    if len(raw) % VECTOR_DTYPE.itemsize:
        raise IndexCorruptionError(
            f"Vector file {bin_path} is {len(raw)} bytes, not a multiple of 4"
        )
    flat = np.frombuffer(raw, dtype=VECTOR_DTYPE)
    if flat.size != count * dim:
        raise IndexCorruptionError(
            f"Vector file length mismatch: have {flat.size}, expected {count * dim}"
        )
    if not isinstance(items, list) or len(items) != count:
        raise IndexCorruptionError(
            f"Sidecar lists {len(items) if isinstance(items, list) else 'no'} "
            f"items but declares count={count}"
        )
    expected = sidecar.get("checksum")
    if expected and buffer_checksum(raw) != expected:
        raise IndexCorruptionError(
            "Vector file checksum does not match sidecar "
            f"(build {sidecar.get('build_id', '?')})"
        )

    try:
        facts = tuple(Fact.from_dict(item) for item in items)
    except (KeyError, TypeError) as exc:
        raise IndexCorruptionError(f"Malformed index item: {exc}") from exc

    return KnowledgeIndex(
        dim=dim,
        facts=facts,
        vectors=flat.reshape(count, dim),
        build_id=str(sidecar.get("build_id", "")),
        model=str(sidecar.get("model", "")),
    )


class IndexLoader:
    """Process-wide, init-once holder for the knowledge index.

    The first ``load()`` reads storage; every later call returns the
    same immutable ``KnowledgeIndex``.  There is no invalidation: a new
    build is picked up by restarting the process.

    Parameters
    ----------
    directory : path holding ``kb.meta.json`` and its ``kb.vec.<build_id>.bin``.
    """

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)
        self._index: KnowledgeIndex | None = None
        self._lock = threading.Lock()
        self.reads = 0

    @property
    def loaded(self) -> bool:
        return self._index is not None

    def load(self) -> KnowledgeIndex:
        index = self._index
        if index is not None:
            return index
        with self._lock:
            if self._index is None:
                self._index = read_index(self.directory)
                self.reads += 1
                logger.info(
                    "Loaded knowledge index: %d facts × %d dims (build %s)",
                    self._index.count,
                    self._index.dim,
                    self._index.build_id or "unknown",
                )
            return self._index
