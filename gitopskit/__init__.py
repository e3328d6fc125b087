"""GitOps helpers: manifest parsing, sync task ordering, tracing and OpenAPI model deduplication."""

__version__ = "0.1.0"