"""
Identifier Generation

Identifiers are fixed-length strings drawn uniformly from the base62
alphabet with a CSPRNG. At length 8 there are 62^8 (about 2.2e14) possible
identifiers, so collisions are rare but possible; the creation flow treats a
duplicate-key insert as a signal to draw again.

Why Base62?
- URL-safe (no special characters)
- Case-sensitive (more combinations per character)
- Unpredictable identifiers cannot be enumerated the way counters can
"""

import secrets

BASE62_CHARS = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"


class IdentifierGenerator:
    """Draws random identifiers. Stateless, safe to share between requests."""

    def __init__(self, length: int = 8, alphabet: str = BASE62_CHARS):
        if length < 1:
            raise ValueError("identifier length must be positive")
        self.length = length
        self.alphabet = alphabet

    def generate(self) -> str:
        return "".join(secrets.choice(self.alphabet) for _ in range(self.length))
