"""Discovery of neutral (source-language) resource files."""
import logging
import os
import re
from typing import Iterable, List, Optional, Pattern

from resx_sync.models import NeutralFile

logger = logging.getLogger(__name__)

DEFAULT_RESOURCE_EXTENSION = '.resx'
DEFAULT_EXCLUDED_FOLDERS = ('.git', 'bin', 'obj', 'packages', 'node_modules')

# <name>.<locale-tag><ext>, e.g. Strings.fr.resx, Strings.fr-CA.resx, Strings.zh-Hans.resx
_LOCALE_TAG = r'(?:[a-z]{2}(?:-[a-zA-Z]{2,4})?|[a-z]{2}-[A-Z][a-z]{3})'


def locale_suffix_pattern(extension: str = DEFAULT_RESOURCE_EXTENSION) -> Pattern[str]:
    """Build the regex matching locale-suffixed file names for ``extension``."""
    return re.compile(rf'^.+\.{_LOCALE_TAG}{re.escape(extension)}$')


def is_neutral_file_name(file_name: str, extension: str = DEFAULT_RESOURCE_EXTENSION) -> bool:
    """
    Check whether a file name denotes a neutral resource file.

    Args:
        file_name: The bare file name (no directory).
        extension: The resource extension, including the leading dot.

    Returns:
        True if the name ends with ``extension`` and carries no locale suffix.
    """
    if not file_name.endswith(extension):
        return False
    return not locale_suffix_pattern(extension).match(file_name)


def find_neutral_files(
        root_path: str,
        excluded_folders: Optional[Iterable[str]] = None,
        extension: str = DEFAULT_RESOURCE_EXTENSION
) -> List[NeutralFile]:
    """
    Walk ``root_path`` and collect the neutral resource files.

    Directories whose name is in ``excluded_folders`` are pruned together with
    everything beneath them. Entries are visited in sorted order so that the
    result is deterministic for a given tree.

    Args:
        root_path: The directory to scan.
        excluded_folders: Directory names to prune. Defaults to the usual
            version-control, build-output and package-cache folders.
        extension: The resource extension, including the leading dot.

    Returns:
        The neutral files in traversal order.
    """
    excluded = set(DEFAULT_EXCLUDED_FOLDERS if excluded_folders is None else excluded_folders)
    pattern = locale_suffix_pattern(extension)
    neutral_files: List[NeutralFile] = []

    logger.info("Scanning for neutral %s files in: %s", extension, root_path)

    def _on_walk_error(exc: OSError) -> None:
        logger.warning("Could not read directory '%s': %s", exc.filename, exc.strerror)

    for current_dir, dirs, files in os.walk(root_path, onerror=_on_walk_error):
        dirs[:] = sorted(d for d in dirs if d not in excluded)
        for file_name in sorted(files):
            if not file_name.endswith(extension):
                continue
            if pattern.match(file_name):
                logger.debug("Ignoring locale-suffixed file: %s", os.path.join(current_dir, file_name))
                continue
            neutral_files.append(NeutralFile.from_path(os.path.join(current_dir, file_name), root_path))

    logger.info("Found %d neutral %s file(s)", len(neutral_files), extension)
    for neutral_file in neutral_files:
        logger.debug("  - %s", neutral_file.relative_path)

    return neutral_files


def destination_path(neutral_file: NeutralFile, locale: str, extension: str = DEFAULT_RESOURCE_EXTENSION) -> str:
    """Path of the ``<base>.<locale><ext>`` file beside ``neutral_file``."""
    return os.path.join(neutral_file.directory, f"{neutral_file.base_name(extension)}.{locale}{extension}")
