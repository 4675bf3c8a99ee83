"""Expose summaries for top-level scene nodes."""

from __future__ import annotations

from typing import Any, Dict, List

from ..core.loader import SceneInspector
from ..models import Mesh, Object3D


class TopLevelInspector(SceneInspector):
    id = "top_level_nodes"

    def collect(self, scene: Object3D) -> List[Dict[str, Any]]:
        summary: List[Dict[str, Any]] = []
        for node in scene.children:
            entry: Dict[str, Any] = {
                "name": node.name or f"Node_{node.id}",
                "node_type": type(node).__name__,
                "child_count": len(node.children),
                "is_mesh": isinstance(node, Mesh),
            }
            if isinstance(node, Mesh):
                entry["material_count"] = len(node.materials)
                entry["vertex_count"] = node.geometry.vertex_count
            summary.append(entry)
        return summary
