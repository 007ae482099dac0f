"""WebAudit — AI-scored website audits streamed over SSE."""

__version__ = "1.0.0"
