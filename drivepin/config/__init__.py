"""Configuration: settings file and the bundled default mapping."""
