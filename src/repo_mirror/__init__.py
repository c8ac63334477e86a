"""Mirror remote directory listings and syntax-highlighted source files with time-bounded caching."""
