"""Chat editor HTTP and WebSocket routers."""
