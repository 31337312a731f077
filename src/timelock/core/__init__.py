"""Core vault logic, collaborators and ambient configuration."""
