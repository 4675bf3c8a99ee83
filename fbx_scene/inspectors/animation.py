"""Summarise animation clips attached to the scene root."""

from __future__ import annotations

from typing import Any, Dict, List

from ..core.loader import SceneInspector
from ..models import Object3D


class AnimationInspector(SceneInspector):
    id = "animations"

    def collect(self, scene: Object3D) -> List[Dict[str, Any]]:
        return [
            {
                "name": clip.name,
                "duration": clip.duration,
                "curve_count": len(clip.curves),
                "targets": sorted({curve.node_name for curve in clip.curves}),
            }
            for clip in scene.animations
        ]
