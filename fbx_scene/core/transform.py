"""FBX pivot transform model.

FBX stores a node's local transform as independent components rather than a
matrix. The local matrix is

    T * Roff * Rp * Rpre * R * Rpost^-1 * Rp^-1 * Soff * Sp * S * Sp^-1

and is re-expressed against the parent's global rotation and scale according
to the node's inherit type. See
http://help.autodesk.com/view/FBX/2017/ENU/?guid=__files_GUID_10CDD63C_79C1_4F2D_BB28_AD2BE65A02ED_htm
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional, Sequence

import numpy as np

if TYPE_CHECKING:  # pragma: no cover
    from ..models import Object3D
    from .catalog import FBXObject

logger = logging.getLogger(__name__)

EULER_ORDERS = ("ZYX", "YZX", "XZY", "ZXY", "YXZ", "XYZ")
SPHERIC_XYZ = 6


def euler_order(order: Optional[int]) -> str:
    """Map an FBX ``RotationOrder`` enum to a matrix product order."""

    order = int(order or 0)
    if order == SPHERIC_XYZ:
        logger.warning("Unsupported Euler order: Spherical XYZ. Rotations may be incorrect.")
        return EULER_ORDERS[0]
    if not 0 <= order < len(EULER_ORDERS):
        logger.warning("Unknown Euler order %s, using %s", order, EULER_ORDERS[0])
        return EULER_ORDERS[0]
    return EULER_ORDERS[order]


@dataclass
class TransformData:
    """Pivot, offset, rotation and scale fields copied from a Model node."""

    inherit_type: int = 0
    euler_order: str = "ZYX"
    translation: Optional[Sequence[float]] = None
    pre_rotation: Optional[Sequence[float]] = None
    rotation: Optional[Sequence[float]] = None
    post_rotation: Optional[Sequence[float]] = None
    scale: Optional[Sequence[float]] = None
    scaling_offset: Optional[Sequence[float]] = None
    scaling_pivot: Optional[Sequence[float]] = None
    rotation_offset: Optional[Sequence[float]] = None
    rotation_pivot: Optional[Sequence[float]] = None

    @classmethod
    def from_model(cls, model: "FBXObject") -> "TransformData":
        data = cls(euler_order=euler_order(model.prop("RotationOrder")))
        if model.has("InheritType"):
            data.inherit_type = int(model.prop("InheritType", 0))
        data.translation = _vector(model.prop("Lcl Translation"))
        data.pre_rotation = _vector(model.prop("PreRotation"))
        data.rotation = _vector(model.prop("Lcl Rotation"))
        data.post_rotation = _vector(model.prop("PostRotation"))
        data.scale = _vector(model.prop("Lcl Scaling"))
        data.scaling_offset = _vector(model.prop("ScalingOffset"))
        data.scaling_pivot = _vector(model.prop("ScalingPivot"))
        data.rotation_offset = _vector(model.prop("RotationOffset"))
        data.rotation_pivot = _vector(model.prop("RotationPivot"))
        return data

    @classmethod
    def geometric_from_model(cls, model: "FBXObject") -> "TransformData":
        """Geometric* offsets, which apply to the geometry only."""

        return cls(
            euler_order=euler_order(model.prop("RotationOrder")),
            translation=_vector(model.prop("GeometricTranslation")),
            rotation=_vector(model.prop("GeometricRotation")),
            scale=_vector(model.prop("GeometricScaling")),
        )


def _vector(value: Any) -> Optional[Sequence[float]]:
    if value is None:
        return None
    values = [float(component) for component in value]
    return values if len(values) == 3 else None


def translation_matrix(vector: Sequence[float]) -> np.ndarray:
    matrix = np.identity(4)
    matrix[:3, 3] = vector
    return matrix


def scale_matrix(vector: Sequence[float]) -> np.ndarray:
    return np.diag([float(vector[0]), float(vector[1]), float(vector[2]), 1.0])


def _axis_rotation(axis: str, angle: float) -> np.ndarray:
    c, s = math.cos(angle), math.sin(angle)
    if axis == "X":
        return np.array([[1, 0, 0], [0, c, -s], [0, s, c]], dtype=float)
    if axis == "Y":
        return np.array([[c, 0, s], [0, 1, 0], [-s, 0, c]], dtype=float)
    return np.array([[c, -s, 0], [s, c, 0], [0, 0, 1]], dtype=float)


def euler_matrix(degrees: Sequence[float], order: str = "ZYX") -> np.ndarray:
    """Rotation matrix for XYZ angles in degrees.

    ``order`` names the matrix product, so ``"ZYX"`` is ``Rz @ Ry @ Rx``: X is
    applied first, which is FBX's default ``eEulerXYZ``.
    """

    angles = dict(zip("XYZ", (math.radians(float(value)) for value in degrees)))
    rotation = np.identity(3)
    for axis in order:
        rotation = rotation @ _axis_rotation(axis, angles[axis])
    matrix = np.identity(4)
    matrix[:3, :3] = rotation
    return matrix


def invert(matrix: np.ndarray) -> np.ndarray:
    """Inverse of ``matrix``; a singular matrix yields zeros."""

    try:
        return np.linalg.inv(matrix)
    except np.linalg.LinAlgError:
        return np.zeros((4, 4))


def _position_only(matrix: np.ndarray) -> np.ndarray:
    result = np.identity(4)
    result[:3, 3] = matrix[:3, 3]
    return result


def _rotation_only(matrix: np.ndarray) -> np.ndarray:
    basis = np.array(matrix[:3, :3], dtype=float)
    scale = np.linalg.norm(basis, axis=0)
    scale[scale == 0] = 1.0
    result = np.identity(4)
    result[:3, :3] = basis / scale
    return result


def _scale_only(matrix: np.ndarray) -> np.ndarray:
    return scale_matrix(np.linalg.norm(np.asarray(matrix)[:3, :3], axis=0))


def generate_transform(
    data: TransformData,
    parent_matrix: Optional[np.ndarray] = None,
    parent_world: Optional[np.ndarray] = None,
) -> np.ndarray:
    """Compose the local matrix of a node from its pivot data."""

    identity = np.identity(4)
    order = data.euler_order

    translation_m = translation_matrix(data.translation) if data.translation else identity
    pre_rotation_m = euler_matrix(data.pre_rotation, order) if data.pre_rotation else identity
    rotation_m = euler_matrix(data.rotation, order) if data.rotation else identity
    post_rotation_m = invert(euler_matrix(data.post_rotation, order)) if data.post_rotation else identity
    scaling_m = scale_matrix(data.scale) if data.scale else identity

    scaling_offset_m = translation_matrix(data.scaling_offset) if data.scaling_offset else identity
    scaling_pivot_m = translation_matrix(data.scaling_pivot) if data.scaling_pivot else identity
    rotation_offset_m = translation_matrix(data.rotation_offset) if data.rotation_offset else identity
    rotation_pivot_m = translation_matrix(data.rotation_pivot) if data.rotation_pivot else identity

    parent_gx = identity
    parent_lx = identity
    if parent_world is not None:
        parent_gx = np.asarray(parent_world, dtype=float)
        parent_lx = np.asarray(parent_matrix, dtype=float) if parent_matrix is not None else identity

    local_rotation = pre_rotation_m @ rotation_m @ post_rotation_m

    parent_grm = _rotation_only(parent_gx)
    parent_tm = _position_only(parent_gx)
    parent_grsm = invert(parent_tm) @ parent_gx
    parent_gsm = invert(parent_grm) @ parent_grsm

    if data.inherit_type == 0:
        global_rs = parent_grm @ local_rotation @ parent_gsm @ scaling_m
    elif data.inherit_type == 1:
        global_rs = parent_grm @ parent_gsm @ local_rotation @ scaling_m
    else:
        parent_lsm_inv = invert(_scale_only(parent_lx))
        global_rs = parent_grm @ local_rotation @ (parent_gsm @ parent_lsm_inv) @ scaling_m

    transform = (
        translation_m
        @ rotation_offset_m
        @ rotation_pivot_m
        @ pre_rotation_m
        @ rotation_m
        @ post_rotation_m
        @ invert(rotation_pivot_m)
        @ scaling_offset_m
        @ scaling_pivot_m
        @ scaling_m
        @ invert(scaling_pivot_m)
    )

    global_translation = parent_gx @ _position_only(transform)
    global_t = _position_only(global_translation)
    transform = global_t @ global_rs

    return invert(parent_gx) @ transform


def apply_transforms(root: "Object3D") -> None:
    """Second pass over an assembled hierarchy, parents before children."""

    for node in root.walk():
        data = node.transform_data
        if data is not None:
            parent = node.parent
            if parent is not None:
                matrix = generate_transform(data, parent.matrix, parent.matrix_world)
            else:
                matrix = generate_transform(data)
            node.apply_matrix(matrix)
        node.update_world_matrix()
