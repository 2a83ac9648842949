"""Resolve a form source to markup text and a stable identity key."""

from __future__ import annotations

import hashlib
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from markform.errors import SourceNotFound

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedSource:
    markup: str
    identity: str
    path: Path | None = None


def is_markup(source: str | os.PathLike) -> bool:
    """Strings holding a tag opener are literal markup, anything else is a path."""
    return isinstance(source, str) and "<" in source


def resolve_source(
    source: str | os.PathLike,
    search_dirs: Iterable[Path] = (),
) -> ResolvedSource:
    """Turn a path or literal markup into markup text plus an identity key.

    Literal markup is identified by a hash of its content. A path is tried as
    given, then relative to each of ``search_dirs``; its identity is the
    resolved absolute path.
    """
    if is_markup(source):
        digest = hashlib.sha256(source.encode("utf-8")).hexdigest()
        return ResolvedSource(markup=source, identity=f"sha256:{digest}")

    path = _find_template(Path(source), search_dirs)
    markup = path.read_text(encoding="utf-8")
    logger.debug("Loaded form template %s", path)
    return ResolvedSource(markup=markup, identity=str(path), path=path)


def _find_template(path: Path, search_dirs: Iterable[Path]) -> Path:
    candidates = [path]
    if not path.is_absolute():
        candidates.extend(Path(d) / path for d in search_dirs)

    for candidate in candidates:
        if candidate.is_file():
            return candidate.resolve()

    tried = ", ".join(str(c) for c in candidates)
    raise SourceNotFound(f"Form template '{path}' not found (tried: {tried})")
