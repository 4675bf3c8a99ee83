"""List the skeletons bound to skinned meshes."""

from __future__ import annotations

from typing import Any, Dict, List

from ..core import traversal
from ..core.loader import SceneInspector
from ..models import Object3D, SkinnedMesh


class SkeletonInspector(SceneInspector):
    id = "skeletons"

    def collect(self, scene: Object3D) -> List[Dict[str, Any]]:
        skeletons: List[Dict[str, Any]] = []
        for mesh in traversal.iter_by_type(scene, SkinnedMesh):
            if mesh.skeleton is None:
                continue
            joints = []
            for bone in mesh.skeleton.bones:
                joints.append(
                    {
                        "name": bone.name or f"Node_{bone.id}",
                        "translation": tuple(float(value) for value in bone.position),
                        "parent": bone.parent.name if bone.parent is not None else None,
                    }
                )
            skeletons.append({"mesh": mesh.name, "joint_count": len(joints), "joints": joints})
        return skeletons
