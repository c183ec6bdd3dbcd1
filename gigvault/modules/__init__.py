"""Domain modules: one package per resolver."""
