"""Application services orchestrating domain use cases."""
