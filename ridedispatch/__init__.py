"""Real-time ride dispatch engine."""
