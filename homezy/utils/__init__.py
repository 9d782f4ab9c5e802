"""Pure helpers for date and frequency arithmetic."""
