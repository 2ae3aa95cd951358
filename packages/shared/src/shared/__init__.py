"""Cross-service primitives shared by portal packages."""
