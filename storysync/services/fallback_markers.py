"""
storysync/services/fallback_markers.py
Locally persisted "liked" markers used only to pre-seed the first paint.
"""

import json
import logging
from pathlib import Path
from typing import Dict, Optional, Protocol

from storysync.core.config import settings

logger = logging.getLogger("storysync")


class FallbackMarkerStore(Protocol):
    def get_fallback_liked(self, story_id: str) -> Optional[bool]: ...

    def set_fallback_liked(self, story_id: str, liked: bool) -> None: ...


class InMemoryFallbackMarkers:
    def __init__(self, initial: Optional[Dict[str, bool]] = None):
        self._markers: Dict[str, bool] = dict(initial or {})

    def get_fallback_liked(self, story_id: str) -> Optional[bool]:
        return self._markers.get(story_id)

    def set_fallback_liked(self, story_id: str, liked: bool) -> None:
        self._markers[story_id] = bool(liked)


class JsonFileFallbackMarkers:
    """Markers kept in a small JSON object file: {"<story_id>": true|false}."""

    def __init__(self, path):
        self._path = Path(path)
        self._markers: Optional[Dict[str, bool]] = None

    def get_fallback_liked(self, story_id: str) -> Optional[bool]:
        return self._load().get(story_id)

    def set_fallback_liked(self, story_id: str, liked: bool) -> None:
        markers = self._load()
        markers[story_id] = bool(liked)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self._path.with_suffix(self._path.suffix + ".tmp")
            tmp.write_text(json.dumps(markers, sort_keys=True), encoding="utf-8")
            tmp.replace(self._path)
        except OSError as exc:
            # Markers are a first-paint hint only; the server stays authoritative
            logger.warning("fallback_markers.write_failed %s: %s", self._path, exc)

    def _load(self) -> Dict[str, bool]:
        if self._markers is not None:
            return self._markers
        markers: Dict[str, bool] = {}
        if self._path.exists():
            try:
                raw = json.loads(self._path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as exc:
                logger.warning("fallback_markers.read_failed %s: %s", self._path, exc)
                raw = {}
            if isinstance(raw, dict):
                markers = {str(k): v for k, v in raw.items() if isinstance(v, bool)}
        self._markers = markers
        return markers


def markers_from_settings(settings_obj=None) -> FallbackMarkerStore:
    cfg = settings_obj or settings
    if cfg.FALLBACK_MARKERS_PATH:
        return JsonFileFallbackMarkers(cfg.FALLBACK_MARKERS_PATH)
    return InMemoryFallbackMarkers()
