from .ulid import generate_prefixed_ulid, generate_ulid, parse_ulid

__all__ = ["generate_prefixed_ulid", "generate_ulid", "parse_ulid"]
