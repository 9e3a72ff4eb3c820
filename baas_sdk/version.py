"""
Version information for the BaaS SDK.
"""
import importlib.metadata
import pathlib

import tomli

DISTRIBUTION = "baas-sdk"
FALLBACK_VERSION = "0.1.0"


def _version_from_pyproject() -> str:
    """Read the version from a source checkout's pyproject.toml."""
    path = pathlib.Path(__file__).parent.parent / "pyproject.toml"
    try:
        with path.open("rb") as f:
            return tomli.load(f)["project"]["version"]
    except (FileNotFoundError, KeyError, tomli.TOMLDecodeError):
        return FALLBACK_VERSION


try:
    __version__ = importlib.metadata.version(DISTRIBUTION)
except importlib.metadata.PackageNotFoundError:
    __version__ = _version_from_pyproject()
