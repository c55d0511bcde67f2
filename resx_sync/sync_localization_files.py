import argparse
import asyncio
import base64
import logging
import os
import posixpath
import sys
from typing import Any, Dict, List, Optional, Sequence

# --- Python Version Check ---
if sys.version_info < (3, 11):
    sys.stderr.write("Error: This tool requires Python 3.11 or newer.\n")
    sys.stderr.write(f"You are running Python {sys.version.split()[0]}.\n")
    sys.exit(1)
# --- End Version Check ---

from tqdm import tqdm

from resx_sync.app_config import AppConfig, DEFAULT_LOCALES, load_app_config, parse_locale_list
from resx_sync.archive_extractor import extract_resource_entries
from resx_sync.content_writer import write_if_changed
from resx_sync.errors import (
    JobTimeoutError,
    KeyCompletenessError,
    LocaleValidationError,
    RemoteError,
    ResxParseError,
    WriteError
)
from resx_sync.file_classifier import destination_path, find_neutral_files
from resx_sync.job_poller import export_with_backoff, wait_for_job
from resx_sync.lokalise_client import Deferred, LokaliseClient, MachineTranslateRequest, UploadRequest
from resx_sync.models import JobState, NeutralFile, RunStats, WriteAction
from resx_sync.translation_validator import check_translation_completeness, validate_locales

logger = logging.getLogger(__name__)

SUMMARY_WIDTH = 60


def _record_failure(stats: RunStats, context: str, message: str) -> None:
    logger.error("[%s] %s", context, message)
    stats.record_failure(context, message)


def match_neutral_file(entry_name: str, neutral_files: Sequence[NeutralFile]) -> Optional[NeutralFile]:
    """
    Find the neutral file a bundle entry translates.

    Relative path equality wins; otherwise the first neutral file with the same
    base name is used.
    """
    normalized = entry_name.replace('\\', '/')
    for neutral_file in neutral_files:
        if neutral_file.relative_path == normalized:
            return neutral_file
    entry_file_name = posixpath.basename(normalized)
    for neutral_file in neutral_files:
        if neutral_file.file_name == entry_file_name:
            return neutral_file
    return None


async def check_project_locales(client: LokaliseClient, config: AppConfig) -> None:
    """
    Validate the requested locales against the project's languages.

    Skipped in a dry run. When the backend reports no languages, including when
    the fetch itself fails, validation is skipped with a warning and the run
    proceeds with the requested locales.

    Raises:
        LocaleValidationError: If any requested locale is not configured remotely.
    """
    if config.dry_run:
        logger.info("[Dry Run] Would validate locales: %s", ', '.join(config.locales))
        return

    logger.info("Fetching project languages from Lokalise...")
    try:
        available = await client.fetch_project_languages(config.project_id)
    except RemoteError as fetch_exc:
        logger.warning("Failed to fetch project languages: %s", fetch_exc)
        available = set()

    if not available:
        logger.warning("No languages configured in Lokalise project or failed to fetch.")
        logger.info("Proceeding with requested locales...")
        return

    logger.debug("Project has %d language(s) configured", len(available))
    result = validate_locales(config.locales, available)
    if not result.is_valid:
        raise LocaleValidationError(result.invalid_locales, result.available_locales)
    logger.info("All %d locale(s) are valid", len(config.locales))


async def upload_neutral_file(client: LokaliseClient, config: AppConfig, neutral_file: NeutralFile) -> bool:
    """
    Upload one neutral file and wait for the backend to import it.

    Returns:
        True if the file counts as uploaded. A queued upload that does not
        finish within its budget returns False after a warning.

    Raises:
        RemoteError: If the request or the import process fails.
        OSError: If the file cannot be read.
    """
    relative_path = neutral_file.relative_path
    logger.info("Uploading: %s", relative_path)

    if config.dry_run:
        logger.info("[Dry Run] Would upload: %s", relative_path)
        return True

    with open(neutral_file.path, 'rb') as file:
        content = file.read()

    request = UploadRequest(
        filename=relative_path,
        data=base64.b64encode(content).decode('ascii'),
        lang_iso=config.source_locale,
        tags=config.upload_tags
    )
    result = await client.upload_file(config.project_id, request)

    if isinstance(result, Deferred):
        logger.debug("Upload queued (Process ID: %s)", result.process_id)
        job = await wait_for_job(
            client, result, config.upload_timeout_seconds, config.job_poll_interval_seconds
        )
        if job.state is JobState.FAILED:
            raise RemoteError(f"Upload process failed: {job.message}")
        if job.state is JobState.TIMED_OUT:
            logger.warning("Upload of %s did not complete in time; it may still finish remotely.", relative_path)
            return False

    logger.info("Uploaded successfully: %s", relative_path)
    return True


async def upload_neutral_files(
        client: LokaliseClient,
        config: AppConfig,
        neutral_files: Sequence[NeutralFile],
        stats: RunStats
) -> None:
    """Upload every neutral file; one failure never blocks the others."""
    for neutral_file in tqdm(neutral_files, desc="Uploading", unit="file", leave=False):
        try:
            if await upload_neutral_file(client, config, neutral_file):
                stats.files_uploaded += 1
        except (RemoteError, OSError) as upload_exc:
            _record_failure(stats, 'Upload', f"Failed to upload {neutral_file.relative_path}: {upload_exc}")


async def trigger_machine_translation(client: LokaliseClient, config: AppConfig) -> bool:
    """
    Ask the backend to machine-translate missing entries for every locale.

    Failures and timeouts are only logged as warnings; machine translation never
    decides the outcome of the run.

    Returns:
        True if every locale's translation completed.
    """
    logger.info("Triggering machine translation for missing translations...")

    if config.dry_run:
        logger.info("[Dry Run] Would trigger MT for locales: %s", ', '.join(config.locales))
        return True

    success = True
    for locale in config.locales:
        logger.info("Triggering MT for locale: %s", locale)
        try:
            result = await client.trigger_machine_translation(
                config.project_id, MachineTranslateRequest(language_iso=locale)
            )
            if isinstance(result, Deferred):
                logger.debug("MT queued for %s (Process ID: %s)", locale, result.process_id)
                job = await wait_for_job(
                    client, result, config.export_timeout_seconds, config.job_poll_interval_seconds
                )
                if job.state is not JobState.FINISHED:
                    logger.warning("MT process for %s did not complete: %s", locale, job.message)
                    success = False
                    continue
            logger.info("MT completed for locale: %s", locale)
        except RemoteError as mt_exc:
            logger.warning("MT failed for locale %s: %s", locale, mt_exc)
            success = False

    return success


def apply_translated_entry(
        entry_name: str,
        payload: bytes,
        locale: str,
        neutral_files: Sequence[NeutralFile],
        config: AppConfig,
        stats: RunStats
) -> Optional[WriteAction]:
    """
    Validate one extracted bundle entry and write it beside its neutral source.

    Args:
        entry_name: The entry's path inside the bundle.
        payload: The entry's bytes.
        locale: The locale the bundle was exported for.
        neutral_files: The neutral files discovered for this run.
        config: The run configuration.
        stats: The run statistics to update.

    Returns:
        The write action taken, or None if the entry was skipped.
    """
    neutral_file = match_neutral_file(entry_name, neutral_files)
    if neutral_file is None:
        logger.debug("No matching neutral file for: %s", entry_name)
        return None

    dest_path = destination_path(neutral_file, locale, config.resource_extension)
    dest_name = os.path.basename(dest_path)

    try:
        check_translation_completeness(neutral_file.path, payload, f"{entry_name} [{locale}]")
    except (KeyCompletenessError, ResxParseError) as key_exc:
        _record_failure(stats, 'KeyCheck', f"Not writing {dest_name}: {key_exc}")
        return None

    try:
        action = write_if_changed(dest_path, payload, dry_run=config.dry_run)
    except WriteError as write_exc:
        _record_failure(stats, 'Write', str(write_exc))
        return None

    stats.record_write(action)
    return action


async def process_locale(
        client: LokaliseClient,
        config: AppConfig,
        locale: str,
        neutral_files: Sequence[NeutralFile],
        stats: RunStats
) -> None:
    """Export, download, verify and write the translations of one locale."""
    try:
        bundle_url = await export_with_backoff(
            client,
            config.project_id,
            locale,
            config.export_timeout_seconds,
            config.job_poll_interval_seconds
        )
    except (RemoteError, JobTimeoutError) as export_exc:
        _record_failure(stats, 'Export', f"Failed to export locale {locale}: {export_exc}")
        return

    logger.info("Downloading bundle for locale: %s", locale)
    try:
        bundle = await client.download_bundle(bundle_url)
    except RemoteError as download_exc:
        _record_failure(stats, 'Download', f"Failed to download bundle for {locale}: {download_exc}")
        return
    logger.debug("Bundle downloaded (%d bytes)", len(bundle))

    entries = extract_resource_entries(bundle, config.resource_extension)
    if not entries:
        logger.warning("Bundle for %s contains no %s files", locale, config.resource_extension)

    for entry_name, payload in entries.items():
        apply_translated_entry(entry_name, payload, locale, neutral_files, config, stats)

    stats.locales_processed += 1


async def run_sync(config: AppConfig, client: LokaliseClient) -> RunStats:
    """
    Run the whole synchronization pipeline.

    Args:
        config: The run configuration.
        client: The remote client.

    Returns:
        RunStats: The counters and failures of this run.
    """
    stats = RunStats()

    if config.dry_run:
        logger.warning("DRY RUN MODE - No changes will be made")
    logger.info("Root path: %s", config.root_path)
    logger.info("Target locales: %s", ', '.join(config.locales))

    # Step 1: Discover neutral files
    logger.info("STEP 1: Discovering neutral %s files...", config.resource_extension)
    neutral_files = find_neutral_files(config.root_path, config.excluded_folders, config.resource_extension)
    stats.neutral_files_found = len(neutral_files)
    if not neutral_files:
        logger.warning("No neutral %s files found. Nothing to do.", config.resource_extension)
        return stats

    # Step 2: Validate locales before any remote mutation
    logger.info("STEP 2: Validating locales...")
    try:
        await check_project_locales(client, config)
    except LocaleValidationError as validation_exc:
        _record_failure(stats, 'LocaleValidation', str(validation_exc))
        logger.info("Supported locales in Lokalise project:")
        for locale in validation_exc.available_locales:
            logger.info("  - %s", locale)
        logger.error("Execution stopped due to invalid locales.")
        return stats

    # Step 3: Upload
    logger.info("STEP 3: Uploading neutral %s files...", config.resource_extension)
    await upload_neutral_files(client, config, neutral_files, stats)

    # Step 4: Machine translation
    logger.info("STEP 4: Triggering machine translation...")
    await trigger_machine_translation(client, config)

    # Step 5: Export, download and write, one locale at a time
    logger.info("STEP 5: Exporting and downloading localized files...")
    for locale in tqdm(config.locales, desc="Locales", unit="locale", leave=False):
        await process_locale(client, config, locale, neutral_files, stats)

    return stats


def format_summary(stats: RunStats) -> str:
    """Render the end-of-run summary."""
    lines = [
        '',
        '=' * SUMMARY_WIDTH,
        'EXECUTION SUMMARY'.center(SUMMARY_WIDTH),
        '=' * SUMMARY_WIDTH,
        '',
        f"  Neutral files found:          {stats.neutral_files_found}",
        f"  Files uploaded:               {stats.files_uploaded}",
        f"  Locales processed:            {stats.locales_processed}",
        f"  Localized files created:      {stats.files_created}",
        f"  Localized files updated:      {stats.files_updated}",
        f"  Failures:                     {len(stats.failures)}",
    ]
    if stats.failures:
        lines.append('')
        lines.append('  Failure Details:')
        for failure in stats.failures:
            lines.append(f"    - [{failure.context}] {failure.message}")
    lines.append('')
    lines.append('=' * SUMMARY_WIDTH)
    return '\n'.join(lines)


def write_failure_report(stats: RunStats, report_path: str) -> None:
    """Write a markdown list of failures, or remove a stale report when the run was clean."""
    if stats.failures:
        logger.info("Some steps failed. Writing report to %s", report_path)
        report_dir = os.path.dirname(report_path)
        if report_dir:
            os.makedirs(report_dir, exist_ok=True)
        with open(report_path, 'w', encoding='utf-8') as f:
            f.write("## Resx Synchronization Failures\n\n")
            f.write("The following steps failed during the last synchronization run. "
                    "No partial translations were written for them.\n\n")
            for failure in stats.failures:
                f.write(f"- **{failure.context}**: {failure.message}\n")
    elif os.path.exists(report_path):
        os.remove(report_path)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog='resx-sync',
        description="Upload neutral .resx files to Lokalise, machine-translate missing "
                    "entries and download locale-specific .resx files."
    )
    parser.add_argument('-r', '--root-path', help="Root directory to scan (default: current dir).")
    parser.add_argument('-p', '--project-id', help="Lokalise project ID.")
    parser.add_argument('-t', '--api-token', help="Lokalise API token (overrides LOKALISE_API_TOKEN).")
    parser.add_argument(
        '-l', '--locales', type=parse_locale_list,
        help=f"Comma-separated locales (default: {','.join(DEFAULT_LOCALES)})."
    )
    parser.add_argument('--timeout', dest='timeout_minutes', type=float,
                        help="Export timeout per locale in minutes (default: 10).")
    parser.add_argument('-d', '--dry-run', action='store_true', default=None,
                        help="Simulate without uploading or writing files.")
    parser.add_argument('-v', '--verbose', action='store_true', default=None,
                        help="Enable detailed logging.")
    return parser.parse_args(argv)


def overrides_from_args(args: argparse.Namespace) -> Dict[str, Any]:
    return {key: value for key, value in vars(args).items() if value is not None}


async def main(argv: Optional[List[str]] = None) -> int:
    """
    Entry point: load configuration, run the pipeline, and report.

    Returns:
        The process exit code: 0 when the run recorded no failures, 1 otherwise.
    """
    args = parse_args(argv)
    config = load_app_config(overrides_from_args(args))

    async with LokaliseClient(
            config.api_token,
            base_url=config.api_base_url,
            max_requests_per_second=config.max_requests_per_second
    ) as client:
        stats = await run_sync(config, client)

    print(format_summary(stats))
    if config.failure_report_path:
        write_failure_report(stats, config.failure_report_path)
    return stats.exit_code


def run() -> None:
    try:
        exit_code = asyncio.run(main())
    except Exception as main_exc:
        logger.exception("Fatal error: %s", main_exc)
        exit_code = 1
    sys.exit(exit_code)


if __name__ == "__main__":
    run()
