"""Application layer for ChatKit."""
