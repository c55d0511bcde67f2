from dataclasses import dataclass
from typing import Iterable, List, Set

from resx_sync.errors import KeyCompletenessError
from resx_sync.resx_parser import parse_resx_keys, read_resx_keys


def is_complete(neutral_keys: Set[str], candidate_keys: Set[str]) -> bool:
    """True when every neutral key is present in the candidate."""
    return neutral_keys <= candidate_keys


def missing_keys(neutral_keys: Set[str], candidate_keys: Set[str]) -> Set[str]:
    return neutral_keys - candidate_keys


def check_translation_completeness(neutral_path: str, candidate_content: bytes, candidate_name: str) -> Set[str]:
    """
    Gate a downloaded translation on key completeness.

    Both files are parsed; a parse failure on either side propagates as a
    ``ResxParseError`` and is never treated as an empty key set.

    Args:
        neutral_path: Path of the neutral source file on disk.
        candidate_content: Raw bytes of the candidate translation.
        candidate_name: Name of the candidate entry, for messages.

    Returns:
        The candidate's key set.

    Raises:
        KeyCompletenessError: If the candidate lacks any neutral key.
    """
    neutral_keys = read_resx_keys(neutral_path)
    candidate_keys = parse_resx_keys(candidate_content, candidate_name)
    if not is_complete(neutral_keys, candidate_keys):
        raise KeyCompletenessError(candidate_name, missing_keys(neutral_keys, candidate_keys))
    return candidate_keys


@dataclass(frozen=True)
class LocaleValidationResult:
    invalid_locales: List[str]
    available_locales: List[str]

    @property
    def is_valid(self) -> bool:
        return not self.invalid_locales


def validate_locales(requested: Iterable[str], available: Iterable[str]) -> LocaleValidationResult:
    """
    Cross-check requested locales against the project's configured languages.

    Args:
        requested: Locales the run should process.
        available: Locales configured in the remote project.

    Returns:
        The result, with the invalid locales in request order and the
        available locales sorted lexically for display.
    """
    available_set = set(available)
    invalid = []
    for locale in requested:
        if locale not in available_set and locale not in invalid:
            invalid.append(locale)
    return LocaleValidationResult(invalid_locales=invalid, available_locales=sorted(available_set))
