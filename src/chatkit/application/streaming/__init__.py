"""Stream engine: SSE framing, patch folding, whitelist routing and block projection."""
