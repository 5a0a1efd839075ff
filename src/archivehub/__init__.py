"""archivehub: unified local + remote archive catalog."""

__version__ = "0.1.0"
