from carelink.sync.transcript import TranscriptListener, TranscriptSynchronizer

__all__ = [
    "TranscriptListener",
    "TranscriptSynchronizer",
]
