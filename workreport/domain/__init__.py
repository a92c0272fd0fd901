"""Domain layer definitions."""

from .reviews import ConfirmationPrompt, DuplicateKey, FieldRef, SaveBlock, SaveResult, Transition

__all__ = [
    "ConfirmationPrompt",
    "DuplicateKey",
    "FieldRef",
    "SaveBlock",
    "SaveResult",
    "Transition",
]
