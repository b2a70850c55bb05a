"""App-level services built on the metrics engine: profile refresh and progress statistics."""
