"""ORM model package: registers all models with Base.metadata."""

from castforge.models.podcast_configuration import PodcastConfiguration

__all__ = [
    "PodcastConfiguration",
]
