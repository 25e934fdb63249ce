"""KwikQ queue ticket lifecycle and metrics engine."""
