"""xv6 file-system image builder, on-disk layout, paging and trap models, shell parser and text utilities."""

__version__ = "0.1.0"