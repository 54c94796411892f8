"""Export and restore flows built on the storage layer."""
