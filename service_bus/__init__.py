"""Bus Routes service distribution root."""
