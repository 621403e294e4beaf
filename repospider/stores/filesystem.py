"""JSON document store: one file per repository identity."""

from __future__ import annotations

import json
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from ..errors import PersistenceError
from ..logging import get_logger
from ..models import AnalysisResult, PersistOutcome, RepoIdentity, SpiderFailure
from .base import Persistable, ResultStore, as_results

_UNSAFE_SEGMENT = re.compile(r"[^A-Za-z0-9._-]")
_ANALYTICS_FILENAME = ".analytics.json"


def _safe_segment(value: str) -> str:
    cleaned = _UNSAFE_SEGMENT.sub("_", value.strip())
    if cleaned in {"", ".", ".."}:
        cleaned = f"_{cleaned.replace('.', '_')}_"
    if cleaned.startswith("."):
        cleaned = "_" + cleaned[1:]
    return cleaned


class FileSystemResultStore(ResultStore):
    """Stores analyses under ``root/<workspace>/owner/repo[/subpath].json``."""

    def __init__(self, root: Path, *, workspace_id: str = "local") -> None:
        self.root = Path(root)
        self.workspace_id = workspace_id
        self.base = self.root / _safe_segment(workspace_id)
        self._logger = get_logger("stores.filesystem")
        if not self.base.exists():
            self._logger.info("Creating directory '%s' to store analyses", self.base)
            self.base.mkdir(parents=True, exist_ok=True)

    def location_for(self, identity: RepoIdentity) -> str:
        segments = [_safe_segment(identity.owner), _safe_segment(identity.name)]
        if identity.path:
            segments.extend(
                _safe_segment(part) for part in identity.path.split("/") if part.strip()
            )
        return "/".join(segments) + ".json"

    def path_for(self, identity: RepoIdentity) -> Path:
        return self.base / self.location_for(identity)

    def persist(self, results: Persistable) -> PersistOutcome:
        outcome = PersistOutcome()
        for result in as_results(results):
            outcome.attempted += 1
            try:
                location = self._write(result)
            except PersistenceError as exc:
                self._logger.error("Cannot persist %s: %s", result.identity.url, exc)
                outcome.failed.append(
                    SpiderFailure(
                        repo_url=result.identity.url,
                        while_trying_to="persist",
                        message=str(exc),
                    )
                )
                continue
            self._logger.info("Persisted %s to %s", result.identity.url, location)
            outcome.succeeded.append(location)
        return outcome

    def load_by_identity(self, identity: RepoIdentity) -> Optional[AnalysisResult]:
        path = self.path_for(identity)
        if not path.exists():
            return None
        return self._read(path)

    def load_all(self) -> List[AnalysisResult]:
        results: List[AnalysisResult] = []
        for path in sorted(self.base.rglob("*.json")):
            if path.name.startswith("."):
                continue
            result = self._read(path)
            if result is not None:
                results.append(result)
        return results

    def persist_analytics(self, analytics: Sequence[Dict[str, Any]]) -> None:
        payload = {"workspace_id": self.workspace_id, "kinds": list(analytics)}
        _atomic_write(self.base / _ANALYTICS_FILENAME, json.dumps(payload, indent=2, sort_keys=True))

    def load_analytics(self) -> List[Dict[str, Any]]:
        try:
            data = json.loads((self.base / _ANALYTICS_FILENAME).read_text(encoding="utf-8"))
        except FileNotFoundError:
            return []
        kinds = data.get("kinds") if isinstance(data, dict) else None
        return [kind for kind in kinds if isinstance(kind, dict)] if isinstance(kinds, list) else []

    # ------------------------------------------------------------------
    # Internal helpers

    def _write(self, result: AnalysisResult) -> str:
        location = self.location_for(result.identity)
        target = self.base / location
        try:
            serialised = json.dumps(result.to_dict(), indent=2, sort_keys=True)
        except (TypeError, ValueError) as exc:
            raise PersistenceError(f"Analysis is not serialisable: {exc}", location=location) from exc
        try:
            _atomic_write(target, serialised)
        except OSError as exc:
            raise PersistenceError(f"Cannot write {target}: {exc}", location=location) from exc
        return location

    def _read(self, path: Path) -> Optional[AnalysisResult]:
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
            return AnalysisResult.from_dict(payload)
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
            self._logger.warning("Badly formed analysis in %s: %s", path, exc)
            return None


def _atomic_write(target: Path, text: str) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        "w",
        encoding="utf-8",
        dir=target.parent,
        prefix=f".{target.name}.",
        suffix=".tmp",
        delete=False,
    ) as handle:
        handle.write(text)
        temp_name = handle.name
    try:
        os.replace(temp_name, target)
    except OSError:
        Path(temp_name).unlink(missing_ok=True)
        raise


__all__ = ["FileSystemResultStore"]
