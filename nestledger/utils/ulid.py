"""
ULID (Universally Unique Lexicographically Sortable Identifier) utilities.

ULIDs are time-ordered, which keeps B-tree indexes on billing tables compact
and gives invoices and payments a natural chronological order.
"""

from typing import Optional
from ulid import ULID


def generate_ulid() -> str:
  """Generate a time-ordered ULID string (26 characters)."""
  return str(ULID())


def generate_prefixed_ulid(prefix: str) -> str:
  """
  Generate a prefixed ULID for better readability and type identification.

  Args:
      prefix: A short prefix to identify the record type

  Returns:
      A prefixed ULID string.
      Example: "inv_01ARZ3NDEKTSV4RRFFQ69G5FAV"
  """
  return f"{prefix}_{ULID()}"


def parse_ulid(ulid_str: str) -> Optional[ULID]:
  """
  Parse a ULID string (with or without prefix) back to a ULID object.

  Returns:
      A ULID object if valid, None otherwise
  """
  try:
    if "_" in ulid_str:
      ulid_str = ulid_str.split("_", 1)[1]
    return ULID.from_str(ulid_str)
  except (ValueError, IndexError):
    return None
