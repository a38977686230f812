"""
Resumaker: an AI assisted resume builder.

The `core` package holds the document model, preview rendering, PDF export
and the form controller; `agents` holds the Gemini backed assist flows.
"""

__version__ = "1.0.0"
