"""HTTP API for ConvoSpace."""
