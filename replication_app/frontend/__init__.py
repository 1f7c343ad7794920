"""Admin dashboard and command-line launcher."""
