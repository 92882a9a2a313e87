"""Pure domain helpers (no persistence, no HTTP)."""
