"""Real-time infrastructure — WebSocket gateway.

Events flow one way for broadcasts:
  route → EventBus.publish → Gateway.publish → every open WebSocket
and request/reply for client frames:
  WebSocket → Gateway.handle_inbound → reply to that connection only

Everything is in-process and fire-and-forget. A client that is offline
during a broadcast misses it and catches up through the HTTP API.
"""
