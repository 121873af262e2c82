"""Read-side services: capabilities, canonical state and the activity feed."""
