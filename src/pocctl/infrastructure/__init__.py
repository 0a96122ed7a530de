"""Infrastructure layer — outbound HTTP transport.

This layer depends on stdlib and third-party libs (httpx).
It must never import from services, commands, or output.
"""
