"""Code sessions: model-proposed diffs against in-memory files."""
