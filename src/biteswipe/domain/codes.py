"""Short, human-shareable session codes."""

import random
import re
import string
from dataclasses import dataclass, field

CODE_LENGTH = 6
CODE_ALPHABET = string.ascii_uppercase + string.digits

_CODE_PATTERN = re.compile(rf"^[A-Z0-9]{{{CODE_LENGTH}}}$")
# Codes derived from push keys keep the key's "-" and "_" characters.
_LOOKUP_PATTERN = re.compile(rf"^[A-Z0-9_-]{{{CODE_LENGTH}}}$")


@dataclass
class SessionCodeGenerator:
    """Generate and validate six-character session codes."""

    rng: random.Random = field(default_factory=random.SystemRandom)

    def generate(self) -> str:
        """Return a code drawn uniformly from [A-Z0-9]."""
        return "".join(self.rng.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))

    @staticmethod
    def is_valid(code: str) -> bool:
        """Check a code against the exact six-character pattern."""
        return isinstance(code, str) and _CODE_PATTERN.fullmatch(code) is not None

    @staticmethod
    def is_lookup_code(code: str) -> bool:
        """Accept generated codes and codes derived from legacy session keys."""
        return isinstance(code, str) and _LOOKUP_PATTERN.fullmatch(code) is not None

    @staticmethod
    def normalize(code: str) -> str:
        """Strip whitespace and upper-case user input."""
        return code.strip().upper()


def code_from_key(key: str) -> str:
    """Derive a code from a store key for sessions created without one."""
    return key[:CODE_LENGTH].upper()
