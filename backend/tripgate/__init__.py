"""tripgate: PIN-gated trip membership and live-state session authorization."""

__version__ = "0.1.0"
