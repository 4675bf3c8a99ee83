import pytest

from fbx_scene import FBXLoader


@pytest.fixture
def make_context():
    """Decode a buffer and build its parse context without reconstructing a scene."""

    def _make(buffer, options=None, path=""):
        loader = FBXLoader(options)
        return loader.create_context(loader.parse_tree(buffer), path)

    return _make


@pytest.fixture
def load_scene():
    def _load(buffer, options=None, path=""):
        return FBXLoader(options).parse(buffer, path)

    return _load
