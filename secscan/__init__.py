"""Static security scanner for Compose, Kubernetes and Terraform configuration."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("security-scan")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.1.0-dev"

__all__ = ["__version__"]
