"""FOCUS billing export for HPC compute and storage usage."""

__version__ = "0.1.0"
