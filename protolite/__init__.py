"""protolite - protobuf-compatible message codec and schema compiler."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("protolite")
except PackageNotFoundError:
    __version__ = "(local)"
