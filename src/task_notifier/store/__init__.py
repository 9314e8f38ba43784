"""Task table, archive and audit log storage."""
