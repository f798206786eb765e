"""Domain model: actions, frames and surface ports."""
