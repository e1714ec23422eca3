"""
HTTP and WebSocket surface of the layout engine
"""
