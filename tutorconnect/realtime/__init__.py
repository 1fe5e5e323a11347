"""Realtime infrastructure for live tutoring sessions.

One Socket.IO server carries WebRTC signaling, session chat, file sharing,
whiteboard sync, pre-session reminders and the admin analytics feeds.
"""
