"""Realtime board channel: rooms, presence and event fan-out over Socket.IO."""
