"""
Generative text layer.

Responsibilities:
- Manage Groq API configuration and credentials.
- Stream chat completions incrementally as text deltas.
- Translate API failures into a retryable or terminal service failure.
"""
