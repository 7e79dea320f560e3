"""
Real-time trip relay: Socket.IO fan-out with an HTTP control API.
"""
