"""
Version information for the TrueMoneyX SDK.

Installed metadata wins; a source checkout reads pyproject.toml. Anything
else reports UNKNOWN_VERSION rather than guessing a release number.
"""
import importlib.metadata
import pathlib

import tomli

UNKNOWN_VERSION = "0.0.0"
PYPROJECT = pathlib.Path(__file__).parent.parent / "pyproject.toml"


def _from_pyproject() -> str:
    try:
        with PYPROJECT.open("rb") as f:
            return tomli.load(f)["project"]["version"]
    except (FileNotFoundError, KeyError, tomli.TOMLDecodeError):
        return UNKNOWN_VERSION


try:
    __version__ = importlib.metadata.version("truemoneyx-sdk")
except importlib.metadata.PackageNotFoundError:
    __version__ = _from_pyproject()
