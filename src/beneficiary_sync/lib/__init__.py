"""Domain libraries: document mapping, row extraction and the bulk sink."""
