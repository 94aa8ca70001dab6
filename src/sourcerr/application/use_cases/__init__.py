from .aggregate_streams import AggregateStreamsUseCase
from .resolve_playback import ResolvePlaybackUseCase

__all__ = ["AggregateStreamsUseCase", "ResolvePlaybackUseCase"]
