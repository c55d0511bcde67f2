import hashlib
import logging
import os
import tempfile

from resx_sync.errors import WriteError
from resx_sync.models import WriteAction

logger = logging.getLogger(__name__)

UTF8_BOM = b'\xef\xbb\xbf'


def ensure_bom(content: bytes) -> bytes:
    """Prefix ``content`` with a UTF-8 byte-order mark unless it already has one."""
    if content.startswith(UTF8_BOM):
        return content
    return UTF8_BOM + content


def sha256_digest(content: bytes) -> str:
    return hashlib.sha256(content).hexdigest()


def hash_file(path: str) -> str:
    """Compute the SHA-256 hash of a file."""
    sha = hashlib.sha256()
    with open(path, 'rb') as file:
        for chunk in iter(lambda: file.read(8192), b''):
            sha.update(chunk)
    return sha.hexdigest()


def decide_write(dest_path: str, content: bytes) -> WriteAction:
    """
    Decide whether ``content`` would create, update, or leave ``dest_path`` alone.

    ``content`` is compared exactly as it would land on disk, so callers pass
    the BOM-prefixed bytes.
    """
    if not os.path.exists(dest_path):
        return WriteAction.CREATE
    try:
        existing_digest = hash_file(dest_path)
    except OSError as read_exc:
        raise WriteError(f"Could not read existing file '{dest_path}': {read_exc}") from read_exc
    if existing_digest == sha256_digest(content):
        return WriteAction.SKIP
    return WriteAction.UPDATE


def _target_mode(dest_path: str) -> int:
    """Permission bits the written file should carry: the existing ones, else the umask default."""
    try:
        return os.stat(dest_path).st_mode & 0o777
    except OSError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


def atomic_write(dest_path: str, content: bytes) -> None:
    """
    Replace ``dest_path`` with ``content`` in one step.

    The bytes go to a temporary file in the same directory which is then renamed
    over the destination, so readers see either the old or the new content. An
    existing file keeps its permission bits; a new one gets the umask default.
    """
    directory = os.path.dirname(dest_path) or '.'
    mode = _target_mode(dest_path)
    temp_path = None
    try:
        with tempfile.NamedTemporaryFile(
                mode='wb', delete=False, dir=directory,
                prefix=f".{os.path.basename(dest_path)}.", suffix='.tmp'
        ) as temp_file:
            temp_path = temp_file.name
            temp_file.write(content)
            temp_file.flush()
            os.fsync(temp_file.fileno())
        # NamedTemporaryFile always creates 0600.
        os.chmod(temp_path, mode)
        os.replace(temp_path, dest_path)
    except OSError as write_exc:
        if temp_path and os.path.exists(temp_path):
            try:
                os.remove(temp_path)
            except OSError as cleanup_exc:
                logger.warning("Could not delete temporary file '%s': %s", temp_path, cleanup_exc)
        raise WriteError(f"Failed to write '{dest_path}': {write_exc}") from write_exc


def write_if_changed(dest_path: str, content: bytes, dry_run: bool = False) -> WriteAction:
    """
    Write translated content to ``dest_path`` only when it differs from disk.

    Args:
        dest_path: The destination file path.
        content: The new payload; a UTF-8 BOM is added if missing.
        dry_run: Compute and log the decision without touching the filesystem.

    Returns:
        The action taken (or that would have been taken in a dry run).

    Raises:
        WriteError: If the existing file cannot be read or the new one written.
    """
    final_content = ensure_bom(content)
    action = decide_write(dest_path, final_content)
    file_name = os.path.basename(dest_path)

    if action is WriteAction.SKIP:
        logger.debug("No changes for: %s", file_name)
        return action

    if dry_run:
        logger.info("[Dry Run] Would %s: %s", action.value, dest_path)
        return action

    atomic_write(dest_path, final_content)
    logger.info("Written (%s): %s", action.value, file_name)
    return action
