"""Domain ports implemented by adapters and runtime components."""
