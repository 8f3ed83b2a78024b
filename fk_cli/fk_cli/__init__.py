"""``fkgraph`` command-line interface."""
