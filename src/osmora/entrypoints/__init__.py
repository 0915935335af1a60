"""Process entrypoints and dependency wiring."""
