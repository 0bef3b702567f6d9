"""Cross-service building blocks: errors, ports, clock and the service base class."""
