"""
Aggregated validation failure.
"""

from __future__ import annotations

from typing import Dict, List, Mapping

NON_FIELD_ERRORS = "__all__"


class ValidationError(Exception):
    """
    Maps attribute names (or ``__all__`` for entity-level problems) to the
    messages collected for them.
    """

    def __init__(self, errors: Mapping[str, List[str]]) -> None:
        self.errors: Dict[str, List[str]] = {key: list(messages) for key, messages in errors.items()}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        segments = []
        for name, messages in self.errors.items():
            label = "entity" if name == NON_FIELD_ERRORS else name
            segments.append(f"{label}: {'; '.join(messages)}")
        return "; ".join(segments)
