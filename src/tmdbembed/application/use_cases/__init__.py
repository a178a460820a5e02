from .aggregate_streams import AggregateStreamsUseCase, pick_best_stream

__all__ = ["AggregateStreamsUseCase", "pick_best_stream"]
