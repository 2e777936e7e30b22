"""World state and terrain."""
