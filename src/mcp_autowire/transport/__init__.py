from .multiplexer import SessionTransportMultiplexer
from .routes import create_routes, health_check, message_endpoint
from .sse import SseSessionTransport

__all__ = ["SessionTransportMultiplexer", "SseSessionTransport", "create_routes", "health_check", "message_endpoint"]
