"""Command line utilities for aws_event_sources."""
