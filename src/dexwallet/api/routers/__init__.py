"""Per-chain API routers."""
