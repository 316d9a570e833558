"""Document types: id prefixes and workflow configuration."""
