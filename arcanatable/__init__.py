"""ArcanaTable real-time tabletop session layer."""

__version__ = "0.3.0"
