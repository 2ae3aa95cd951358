"""Authentication and legacy-directory migration service for the maritime portal."""
