"""Stations, departments, units and reporters."""
