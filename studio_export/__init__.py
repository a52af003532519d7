"""studio-export: rebuild chat transcripts from wire payloads or a live page."""

__version__ = "0.3.0"
