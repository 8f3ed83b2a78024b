"""Foreign-key dependency analysis: graph building, cycle detection, cascade
simulation and graph layout."""
