"""Chat card rendering."""
