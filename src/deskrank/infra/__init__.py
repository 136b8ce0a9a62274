"""Infrastructure helpers shared across components."""
