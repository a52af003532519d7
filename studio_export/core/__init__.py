"""Transcript extraction and reconstruction engine."""
