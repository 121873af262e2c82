"""Pydantic request models for the control-plane wire format."""
