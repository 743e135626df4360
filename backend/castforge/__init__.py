"""CastForge: podcast and avatar-video creation backend."""

__version__ = "0.1.0"
