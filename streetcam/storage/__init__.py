"""In-memory image cache: spatial index and capture sequences."""
