"""Registry protocol building blocks."""
