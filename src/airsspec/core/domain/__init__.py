"""Domain types, errors and the agent executor loop."""
