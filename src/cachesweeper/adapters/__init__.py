"""Host framework adapters for cachesweeper."""
