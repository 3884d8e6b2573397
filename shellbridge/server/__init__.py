"""HTTP / WebSocket front for the shellbridge Bridge."""
