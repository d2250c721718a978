"""Service building blocks: an adaptive circuit breaker, a TOML parser and a watched file source."""

__version__ = "0.1.0"
__all__ = ["breaker", "fileprovider", "tomlparser"]