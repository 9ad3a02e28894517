"""kryten-foldingbot — Folding@home team chat bot."""
from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("kryten-foldingbot")
except PackageNotFoundError:
    __version__ = "0.0.0"
