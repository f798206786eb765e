"""Remote surface adapters."""
