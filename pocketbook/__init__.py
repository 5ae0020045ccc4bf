"""pocketbook: condense e-books into structured summaries."""
