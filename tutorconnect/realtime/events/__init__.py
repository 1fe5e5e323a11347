"""Payload builders for realtime events.

These modules only shape outbound payloads. They must not define Socket.IO
server instances or connection handlers.
"""
