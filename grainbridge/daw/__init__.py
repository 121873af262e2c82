"""Instrument collaborators: ports, static tables, facade and in-memory stand-ins."""
