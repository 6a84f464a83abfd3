"""n8n Node Catalog - scraping and normalization pipeline for n8n node documentation."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("n8n-node-catalog")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"  # Fallback for development without install
