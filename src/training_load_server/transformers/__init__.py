"""Parser record -> stream sample transformers."""

from training_load_server.transformers.streams import StreamRecordTransformer

__all__ = ["StreamRecordTransformer"]
