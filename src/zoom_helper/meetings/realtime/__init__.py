"""Real-time fan-out of meeting updates to connected viewers."""
