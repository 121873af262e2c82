"""Hand-rolled HTTP/1.1 and WebSocket transport over asyncio streams."""
