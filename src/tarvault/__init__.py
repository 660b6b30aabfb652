"""tarvault: rotating, verified tar.gz backups of directories."""

__version__ = "0.1.0"
