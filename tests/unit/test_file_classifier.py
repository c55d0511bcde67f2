import os

import pytest

from resx_sync.file_classifier import destination_path, find_neutral_files, is_neutral_file_name
from resx_sync.models import NeutralFile


def _touch(path):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, 'wb') as f:
        f.write(b'<root/>')


class TestIsNeutralFileName:

    @pytest.mark.parametrize("name", [
        "Strings.resx",
        "Resources.Designer.resx",
        "My.Form.resx",
        "Errors.resx",
    ])
    def test_neutral_names(self, name):
        assert is_neutral_file_name(name)

    @pytest.mark.parametrize("name", [
        "Strings.fr.resx",
        "Strings.fr-CA.resx",
        "Strings.zh-Hans.resx",
        "Strings.sr-Latn.resx",
        "Strings.en-US.resx",
        "Strings.de-de.resx",
    ])
    def test_locale_suffixed_names(self, name):
        assert not is_neutral_file_name(name)

    def test_other_extensions_are_not_candidates(self):
        assert not is_neutral_file_name("Strings.resx.bak")
        assert not is_neutral_file_name("Strings.json")

    def test_custom_extension(self):
        assert is_neutral_file_name("strings.xml", extension=".xml")
        assert not is_neutral_file_name("strings.fr.xml", extension=".xml")


class TestFindNeutralFiles:

    def test_finds_only_neutral_files(self, tmp_path):
        root = str(tmp_path)
        _touch(os.path.join(root, "Strings.resx"))
        _touch(os.path.join(root, "Strings.fr.resx"))
        _touch(os.path.join(root, "Strings.fr-CA.resx"))
        _touch(os.path.join(root, "Sub", "Dialogs.resx"))
        _touch(os.path.join(root, "Sub", "Dialogs.zh-Hans.resx"))
        _touch(os.path.join(root, "readme.txt"))

        found = find_neutral_files(root)

        assert [f.relative_path for f in found] == ["Strings.resx", "Sub/Dialogs.resx"]

    def test_excluded_directories_are_pruned_at_any_depth(self, tmp_path):
        root = str(tmp_path)
        _touch(os.path.join(root, "App", "Strings.resx"))
        _touch(os.path.join(root, "App", "bin", "Debug", "Strings.resx"))
        _touch(os.path.join(root, "App", "obj", "Strings.resx"))
        _touch(os.path.join(root, ".git", "Strings.resx"))
        _touch(os.path.join(root, "deep", "er", "node_modules", "pkg", "Strings.resx"))

        found = find_neutral_files(root)

        assert [f.relative_path for f in found] == ["App/Strings.resx"]

    def test_exclusion_matches_exact_names_only(self, tmp_path):
        root = str(tmp_path)
        _touch(os.path.join(root, "binaries", "Strings.resx"))

        found = find_neutral_files(root)

        assert [f.relative_path for f in found] == ["binaries/Strings.resx"]

    def test_custom_excluded_folders(self, tmp_path):
        root = str(tmp_path)
        _touch(os.path.join(root, "bin", "Strings.resx"))
        _touch(os.path.join(root, "legacy", "Old.resx"))

        found = find_neutral_files(root, excluded_folders=["legacy"])

        assert [f.relative_path for f in found] == ["bin/Strings.resx"]

    def test_order_is_deterministic(self, tmp_path):
        root = str(tmp_path)
        for name in ["b", "a", "c"]:
            _touch(os.path.join(root, name, "Strings.resx"))

        first = find_neutral_files(root)
        second = find_neutral_files(root)

        assert first == second
        assert [f.relative_path for f in first] == ["a/Strings.resx", "b/Strings.resx", "c/Strings.resx"]

    def test_neutral_file_attributes(self, tmp_path):
        root = str(tmp_path)
        path = os.path.join(root, "Sub", "Strings.resx")
        _touch(path)

        (neutral_file,) = find_neutral_files(root)

        assert neutral_file.path == os.path.abspath(path)
        assert neutral_file.file_name == "Strings.resx"
        assert neutral_file.directory == os.path.dirname(os.path.abspath(path))
        assert neutral_file.base_name(".resx") == "Strings"

    def test_empty_tree(self, tmp_path):
        assert find_neutral_files(str(tmp_path)) == []


def test_destination_path_is_beside_neutral_file(tmp_path):
    neutral_file = NeutralFile.from_path(os.path.join(str(tmp_path), "Sub", "Strings.resx"), str(tmp_path))

    dest = destination_path(neutral_file, "fr-CA")

    assert dest == os.path.join(str(tmp_path), "Sub", "Strings.fr-CA.resx")
