"""Shared configuration, logging and database helpers."""
