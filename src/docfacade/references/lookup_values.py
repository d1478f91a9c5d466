"""
Key/value lookup lists as reference candidates.

Some reference targets are not stored entities but fixed lists of keyed
values with translated labels, such as a car status. These helpers turn
such a list into a candidate set the ReferenceResolver understands: the
key is the id and the translated label is the name.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from ..config import DocFacadeConfig


@dataclass(frozen=True)
class LookupValue:
    """One entry of a lookup list."""

    key: str
    # Label per language code, e.g. {"en": "In use", "nl": "In gebruik"}
    values: Mapping[str, str] = field(default_factory=dict)
    is_active: bool = True
    description: str | None = None

    def label(self, language: str | None = None) -> str:
        """
        Get the label in the given language.

        Falls back to the base language ("en" for "en-US"), then English,
        then the first translation, then the key itself.
        """
        if language is None:
            language = DocFacadeConfig.get_language()
        for candidate in (language, language.split("-")[0], "en"):
            label = self.values.get(candidate)
            if label:
                return label
        return next((v for v in self.values.values() if v), self.key)


def lookup_value_candidates(
    values: Iterable[LookupValue],
    language: str | None = None,
) -> list[dict[str, str]]:
    """
    Build a candidate set from a lookup list.

    Inactive values are left out, so references to them resolve to their
    raw key.

    Args:
        values: The lookup list
        language: Label language, from the configuration when not given

    Returns:
        One ``{"id": key, "name": label}`` mapping per active value
    """
    return [
        {"id": value.key, "name": value.label(language)}
        for value in values
        if value.is_active
    ]
