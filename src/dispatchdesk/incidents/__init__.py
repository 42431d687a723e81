"""Incident provisioning, lifecycle and turnout slips."""
