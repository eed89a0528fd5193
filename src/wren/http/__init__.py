"""HTTP collaborators: request, response and headers."""
