"""ecokernel — a tick-driven simulation kernel for cells, organisms and the metric they stir up."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("ecokernel")
except PackageNotFoundError:
    __version__ = "0.1.0"  # fallback for development
