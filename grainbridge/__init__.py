"""grainbridge: localhost control plane for the Grainulator instrument."""
