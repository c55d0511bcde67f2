import io
import zipfile
from typing import Callable, Dict, Iterable, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from resx_sync.app_config import AppConfig
from resx_sync.lokalise_client import Immediate


def build_resx(keys: Iterable[str], values: Optional[Dict[str, str]] = None) -> bytes:
    """Render a minimal .resx document with one <data> entry per key."""
    values = values or {}
    entries = "".join(
        f'  <data name="{key}" xml:space="preserve">\n    <value>{values.get(key, key + " text")}</value>\n  </data>\n'
        for key in keys
    )
    document = (
        '<?xml version="1.0" encoding="utf-8"?>\n'
        '<root>\n'
        '  <resheader name="resmimetype">\n    <value>text/microsoft-resx</value>\n  </resheader>\n'
        f'{entries}'
        '</root>\n'
    )
    return document.encode('utf-8')


def build_bundle(entries: Dict[str, bytes], compression: int = zipfile.ZIP_DEFLATED) -> bytes:
    """Build an in-memory zip archive from ``{name: bytes}``."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, 'w', compression=compression) as archive:
        for name, payload in entries.items():
            archive.writestr(name, payload)
    return buffer.getvalue()


@pytest.fixture
def resx_content() -> Callable[..., bytes]:
    return build_resx


@pytest.fixture
def zip_bundle() -> Callable[..., bytes]:
    return build_bundle


@pytest.fixture
def make_config(tmp_path) -> Callable[..., AppConfig]:
    """Factory for an AppConfig rooted at ``tmp_path`` unless overridden."""
    def _make(**overrides) -> AppConfig:
        values = dict(
            root_path=str(tmp_path),
            project_id="123abc.456",
            api_token="test-token",
            locales=["fr-CA"],
            source_locale="en",
            timeout_minutes=1,
            dry_run=False,
            verbose=False,
            api_base_url="https://api.example.test/api2",
            max_requests_per_second=100,
            upload_timeout_seconds=5,
            job_poll_interval_seconds=0,
            upload_tags=["auto-upload"],
            resource_extension=".resx",
            excluded_folders=[".git", "bin", "obj", "packages", "node_modules"],
            failure_report_path=None,
        )
        values.update(overrides)
        return AppConfig(**values)
    return _make


@pytest.fixture
def fake_client() -> MagicMock:
    """A LokaliseClient stand-in whose operations all succeed immediately."""
    client = MagicMock()
    client.fetch_project_languages = AsyncMock(return_value={"en", "fr-CA"})
    client.upload_file = AsyncMock(return_value=Immediate({"project_id": "123abc.456"}))
    client.trigger_machine_translation = AsyncMock(return_value=Immediate({}))
    client.get_job_status = AsyncMock()
    client.request_export = AsyncMock(return_value=Immediate("https://bundles.example.test/fr-CA.zip"))
    client.download_bundle = AsyncMock(return_value=b"")
    return client
