"""
Shared building blocks: payload coercion, envelope unwrapping, the async
HTTP client with legacy-path fallback, the query cache and the event bus.
"""
