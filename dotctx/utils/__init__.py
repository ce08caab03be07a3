"""Helpers for markdown parsing, git queries and adapter output."""
