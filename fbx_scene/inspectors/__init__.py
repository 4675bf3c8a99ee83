"""Inspector implementations summarising a loaded scene."""

from .animation import AnimationInspector
from .skeleton import SkeletonInspector
from .top_level import TopLevelInspector

__all__ = [
    "AnimationInspector",
    "SkeletonInspector",
    "TopLevelInspector",
]
