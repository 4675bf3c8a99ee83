"""Command-line interface for fbx_scene."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Tuple

import numpy as np

from .core.exceptions import FBXError
from .core.loader import FBXLoader, LoaderOptions
from .core.tree import FBXNode
from .inspectors import AnimationInspector, SkeletonInspector, TopLevelInspector


def _viewport(value: str) -> Tuple[int, int]:
    try:
        width, height = (int(part) for part in value.lower().split("x", 1))
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected WIDTHxHEIGHT, got {value!r}") from None
    if width <= 0 or height <= 0:
        raise argparse.ArgumentTypeError("Viewport dimensions must be positive.")
    return width, height


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Load FBX files and summarise the reconstructed scene.")
    parser.add_argument("path", type=Path, help="Path to the FBX file to load.")
    parser.add_argument(
        "--resource-path",
        help="Directory used to resolve external texture files (defaults to the file's directory).",
    )
    parser.add_argument(
        "--viewport",
        type=_viewport,
        default=(1920, 1080),
        metavar="WIDTHxHEIGHT",
        help="Viewport size used for cameras without an explicit aspect ratio.",
    )
    parser.add_argument("--tree", action="store_true", help="Print the decoded node tree instead of the scene.")
    parser.add_argument(
        "--max-depth",
        type=int,
        default=None,
        help="Limit how deep --tree descends.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    return parser


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    path: Path = args.path
    if not path.exists():
        parser.error(f"File not found: {path}")

    options = LoaderOptions(resource_path=args.resource_path, viewport_size=args.viewport)
    loader = FBXLoader(options)

    top_level_inspector = TopLevelInspector()
    skeleton_inspector = SkeletonInspector()
    animation_inspector = AnimationInspector()

    try:
        if args.tree:
            tree = loader.parse_tree(path.read_bytes())
            print(f"{path.name}: {tree.kind} FBX {tree.version}")
            for node in tree.root.iter_children():
                _print_tree(node, depth=0, max_depth=args.max_depth)
            return 0
        scene = loader.load(path)
        results = loader.run(scene, [top_level_inspector, skeleton_inspector, animation_inspector])
    except FBXError as exc:
        parser.error(str(exc))
    except OSError as exc:
        parser.error(str(exc))

    _print_top_level_summary(results.get(top_level_inspector.id, []), title=path.name)

    skeletons = results.get(skeleton_inspector.id, [])
    if not skeletons:
        print("No skeletons bound to skinned meshes.")
    for idx, skeleton in enumerate(skeletons, start=1):
        print(f"Skeleton {idx}: {skeleton['mesh']} ({skeleton['joint_count']} joints)")
        for joint in skeleton["joints"]:
            translation = ", ".join(f"{value:.3f}" for value in joint["translation"])
            print(f"  - {joint['name']} (T: {translation})")

    for clip in results.get(animation_inspector.id, []):
        print(f"Clip: {clip['name']} ({clip['duration']:.3f}s, {clip['curve_count']} curves)")
    return 0


def _format_value(value: Any) -> str:
    if isinstance(value, np.ndarray):
        return f"<{value.dtype} array, {len(value)} values>"
    if isinstance(value, bytes):
        return f"<{len(value)} bytes>"
    if isinstance(value, str):
        return f'"{value}"'
    return str(value)


def _print_tree(node: FBXNode, *, depth: int, max_depth: Optional[int]) -> None:
    values = ", ".join(_format_value(value) for value in node.properties)
    print(f"{'  ' * depth}{node.name}: {values}")
    if max_depth is not None and depth >= max_depth:
        return
    for child in node.iter_children():
        _print_tree(child, depth=depth + 1, max_depth=max_depth)


def _print_top_level_summary(entries: Iterable[Dict[str, Any]], *, title: str) -> None:
    entries = list(entries or [])
    if not entries:
        print(f'Top-level scene nodes ({title}): <none>')
        return

    print(f'Top-level scene nodes ({title}):')
    for entry in entries:
        name = entry.get('name', '<unnamed>')
        node_type = entry.get('node_type', 'Object3D')
        child_count = entry.get('child_count', 0)
        extras = []
        if entry.get('is_mesh'):
            extras.append(f"{entry.get('vertex_count', 0)} vertices")
            extras.append(f"{entry.get('material_count', 0)} materials")
        extra_str = f" ({', '.join(extras)})" if extras else ''
        print(f"  - {name} [type: {node_type}, children: {child_count}]{extra_str}")


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
