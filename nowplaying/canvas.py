from __future__ import annotations

import json
import logging
import os
from typing import Optional

from fastapi.concurrency import run_in_threadpool

from nowplaying.errors import AssetLookupError


log = logging.getLogger(__name__)

# Checked in this order; the first existing file wins.
VIDEO_EXTENSIONS = (".mp4", ".webm")

CANVAS_URL_PREFIX = "/canvas"


class CanvasLookup:
    """Find a looping background video ("canvas") for a track.

    A file ``<canvas_dir>/<track_id>.mp4`` (or ``.webm``) takes precedence,
    then an entry in the ``canvas.json`` mapping of track id to URL. The
    mapping is re-read on every lookup so edits apply without a restart.
    """

    def __init__(self, canvas_dir: str, map_file: str):
        self.canvas_dir = canvas_dir
        self.map_file = map_file

    async def lookup(self, track_id: str | None) -> Optional[str]:
        if not track_id:
            return None
        return await run_in_threadpool(self.find, track_id)

    def find(self, track_id: str) -> Optional[str]:
        # track ids are base62; anything path-like is not a local asset name
        if os.path.basename(track_id) != track_id or track_id in (".", ".."):
            return None
        for ext in VIDEO_EXTENSIONS:
            filename = f"{track_id}{ext}"
            if os.path.isfile(os.path.join(self.canvas_dir, filename)):
                return f"{CANVAS_URL_PREFIX}/{filename}"
        try:
            mapping = self._load_mapping()
        except AssetLookupError as exc:
            log.warning("Ignoring canvas mapping: %s", exc.detail)
            return None
        url = mapping.get(track_id)
        return url if isinstance(url, str) and url else None

    def _load_mapping(self) -> dict:
        if not os.path.exists(self.map_file):
            return {}
        try:
            with open(self.map_file, encoding="utf-8") as f:
                mapping = json.load(f)
        except (OSError, ValueError) as exc:
            raise AssetLookupError(f"failed to read {self.map_file}: {exc}") from exc
        if not isinstance(mapping, dict):
            raise AssetLookupError(f"{self.map_file} is not a JSON object")
        return mapping
