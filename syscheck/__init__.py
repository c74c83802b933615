"""syscheck — polls HTTP targets and serves their aggregate health."""

__version__ = "0.1.0"
