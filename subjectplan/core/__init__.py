"""Shared configuration, error and trace helpers."""
