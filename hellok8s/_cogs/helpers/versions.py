"""
Detecting the version of the package, when installed.

The version is used in the User-Agent header of the API requests
and in ``hellok8s --version``.
"""
from importlib.metadata import PackageNotFoundError, version as _get_version

version: str | None
try:
    version = _get_version('hellok8s')
except PackageNotFoundError:
    version = None  # not installed, e.g. running from sources
