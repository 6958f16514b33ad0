"""ConvoSpace: chat relay to LLM providers."""
