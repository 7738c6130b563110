"""
Kernel Layer

Persistence primitives shared by the engines:
- Declarative base and timestamp mixin
- Per-user progress documents (versioned for compare-and-swap writes)
"""

from src.kernel.models import Base, UserProgressRecord

__all__ = [
    "Base",
    "UserProgressRecord",
]
