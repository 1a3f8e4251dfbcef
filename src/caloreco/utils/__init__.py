"""Shared utilities: logging, global constants, enumerations and factories."""
