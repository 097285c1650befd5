"""API key stores."""
