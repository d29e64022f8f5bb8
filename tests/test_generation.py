"""Tests for generation methods and the package generator."""
import shutil
import tarfile

import pytest
import yaml

from config_packager.config import PackagerSettings
from config_packager.config_engine import (
    ConfigCollection,
    ConfigItem,
    GenerationError,
    Package,
    PackageAssigner,
    PackageFile,
    PackageGenerator,
    PackageRenderer,
    PackageStatus,
    create_generation_method,
)
from config_packager.config_engine.generation import (
    ArchiveGenerationMethod,
    VcsGenerationMethod,
    WriteGenerationMethod,
    WriteOutcome,
)
from config_packager.config_store import FileStorage

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


@pytest.fixture
def settings(tmp_path):
    return PackagerSettings(
        profile={"machine_name": "mysite", "name": "My site"},
        export={"folder": str(tmp_path / "export"), "temp_dir": str(tmp_path / "tmp")},
    )


def make_package(name, files):
    return Package(
        machine_name=name,
        name=name,
        status=PackageStatus.DEFAULT,
        files=[PackageFile(filename, content) for filename, content in files],
    )


def archive_members(path):
    with tarfile.open(path, "r:gz") as archive:
        return {
            member.name: archive.extractfile(member).read()
            for member in archive.getmembers()
        }


class FailingArchive(ArchiveGenerationMethod):
    """Archive method whose appends fail for package 'bad'."""

    def write_file(self, package, file):
        if package.machine_name == "bad":
            return WriteOutcome.failed("disk full")
        return super().write_file(package, file)


class TestRegistry:
    """Tests for the generation method registry."""

    def test_create(self, settings):
        assert isinstance(create_generation_method("archive", settings), ArchiveGenerationMethod)
        assert isinstance(create_generation_method("WRITE", settings), WriteGenerationMethod)
        assert isinstance(create_generation_method("vcs", settings), VcsGenerationMethod)

    def test_unknown(self, settings):
        with pytest.raises(ValueError, match="Unknown generation method"):
            create_generation_method("ftp", settings)

    def test_profile_name(self, settings):
        assert create_generation_method("archive", settings).profile_name == "mysite"
        assert create_generation_method("archive", settings, "other").profile_name == "other"


class TestArchiveGeneration:
    """Tests for ArchiveGenerationMethod."""

    def test_archive_written(self, settings, tmp_path):
        method = ArchiveGenerationMethod(settings)

        results = method.generate([make_package("P", [("P/readme.txt", b"hello")])])

        assert len(results) == 1
        assert results[0].success
        assert results[0].message == "Package P written to archive."
        assert method.export_submit() == str(tmp_path / "tmp" / "mysite.tar.gz")
        assert archive_members(method.archive_path) == {"P/readme.txt": b"hello"}

    def test_regenerate_replaces_archive(self, settings):
        package = make_package("P", [("P/readme.txt", b"hello")])

        ArchiveGenerationMethod(settings).generate([package])
        method = ArchiveGenerationMethod(settings)
        method.generate([package])

        with tarfile.open(method.archive_path, "r:gz") as archive:
            names = archive.getnames()
        assert names == ["P/readme.txt"]
        assert archive_members(method.archive_path)["P/readme.txt"] == b"hello"

    def test_failing_package_isolated(self, settings):
        method = FailingArchive(settings)

        results = method.generate([
            make_package("bad", [("bad/a.yml", b"a"), ("bad/b.yml", b"b")]),
            make_package("good", [("good/c.yml", b"c")]),
        ])

        assert [r.success for r in results] == [False, True]
        assert results[0].package_name == "bad"
        assert results[0].message == "Package bad not written to archive. Error: disk full."
        assert set(archive_members(method.archive_path)) == {"good/c.yml"}

    def test_unsafe_filename(self, settings):
        method = ArchiveGenerationMethod(settings)

        results = method.generate([
            make_package("evil", [("../evil.txt", b"x")]),
            make_package("P", [("P/readme.txt", b"hello")]),
        ])

        assert [r.success for r in results] == [False, True]
        assert "unsafe path" in results[0].message

    def test_first_failure_stops_package(self, settings):
        method = ArchiveGenerationMethod(settings)

        results = method.generate([
            make_package("P", [("P/ok.txt", b"1"), ("/abs.txt", b"2"), ("P/later.txt", b"3")]),
        ])

        assert not results[0].success
        assert set(archive_members(method.archive_path)) == {"P/ok.txt"}

    def test_unreadable_content_isolated(self, settings):
        method = ArchiveGenerationMethod(settings)

        results = method.generate([
            make_package("bad", [("bad/x.yml", None)]),
            make_package("good", [("good/c.yml", b"c")]),
        ])

        assert [r.success for r in results] == [False, True]
        assert "Failed to archive file x.yml" in results[0].message
        assert set(archive_members(method.archive_path)) == {"good/c.yml"}

    def test_archive_is_reproducible(self, settings):
        package = make_package("P", [("P/readme.txt", b"hello")])

        method = ArchiveGenerationMethod(settings)
        method.generate([package])
        first = method.archive_path.read_bytes()
        method = ArchiveGenerationMethod(settings)
        method.generate([package])

        assert method.archive_path.read_bytes() == first
        with tarfile.open(method.archive_path, "r:gz") as archive:
            assert archive.getmember("P/readme.txt").mtime == 0

    def test_str_content(self, settings):
        method = ArchiveGenerationMethod(settings)

        method.generate([make_package("P", [("P/readme.txt", "héllo")])])

        assert archive_members(method.archive_path)["P/readme.txt"] == "héllo".encode("utf-8")

    def test_profile_first(self, settings):
        profile = make_package("siteprofile", [("siteprofile/siteprofile.info.yml", b"x")])
        profile.type = "profile"
        method = ArchiveGenerationMethod(settings)

        results = method.generate(
            [make_package("P", [("P/readme.txt", b"hello")])],
            include_profile=True,
            profile=profile,
        )

        assert [r.package_name for r in results] == ["siteprofile", "P"]
        assert results[0].message == "Profile siteprofile written to archive."
        assert method.archive_path.name == "siteprofile.tar.gz"

    def test_profile_required(self, settings):
        with pytest.raises(ValueError):
            ArchiveGenerationMethod(settings).generate([], include_profile=True)

    def test_unwritable_temp_dir(self, settings, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("file, not a directory")
        settings.export.temp_dir = blocker / "tmp"

        with pytest.raises(GenerationError):
            ArchiveGenerationMethod(settings).generate([make_package("P", [])])


class TestWriteGeneration:
    """Tests for WriteGenerationMethod."""

    def test_writes_files(self, settings, tmp_path):
        method = WriteGenerationMethod(settings)

        results = method.generate([make_package("P", [("P/readme.txt", b"hello")])])

        export = tmp_path / "export"
        assert (export / "P" / "readme.txt").read_bytes() == b"hello"
        assert results[0].message == f"Package P written to {export}."
        assert method.export_submit() == str(export)

    def test_replaces_package_directory(self, settings, tmp_path):
        WriteGenerationMethod(settings).generate([
            make_package("P", [("P/old.txt", b"old")]),
        ])
        WriteGenerationMethod(settings).generate([
            make_package("P", [("P/new.txt", b"new")]),
        ])

        assert not (tmp_path / "export" / "P" / "old.txt").exists()
        assert (tmp_path / "export" / "P" / "new.txt").exists()

    def test_failure_message_names_folder(self, settings, tmp_path):
        results = WriteGenerationMethod(settings).generate([
            make_package("P", [("../outside.txt", b"x")]),
        ])

        assert not results[0].success
        assert str(tmp_path / "export") in results[0].message
        assert not (tmp_path / "outside.txt").exists()


@requires_git
class TestVcsGeneration:
    """Tests for VcsGenerationMethod."""

    def test_commit_per_package(self, settings, tmp_path):
        method = VcsGenerationMethod(settings)

        results = method.generate([
            make_package("article", [("article/article.info.yml", b"name: article\n")]),
            make_package("media", [("media/media.info.yml", b"name: media\n")]),
        ])

        assert all(r.success for r in results)
        assert len(results[0].variables["commit"]) == 8
        history = method.git.get_history()
        assert [c.message for c in history[:2]] == [
            "Export package media",
            "Export package article",
        ]

    def test_unchanged_package(self, settings):
        package = make_package("article", [("article/article.info.yml", b"name: article\n")])

        VcsGenerationMethod(settings).generate([package])
        results = VcsGenerationMethod(settings).generate([package])

        assert results[0].success
        assert results[0].variables["commit"] == "unchanged"
        assert "(unchanged)" in results[0].message


class TestPackageGenerator:
    """Tests for PackageGenerator."""

    @pytest.fixture
    def active(self, tmp_path):
        storage = FileStorage(tmp_path / "active")
        storage.write("node.type.article", {"type": "article", "name": "Article"})
        storage.write("system.site", {"name": "Site"})
        return storage

    @pytest.fixture
    def collection(self):
        return ConfigCollection([
            ConfigItem("node.type.article", "node", "Article", package="article"),
            ConfigItem("system.site", "system", "Site", package="site"),
        ])

    def make(self, name, config, status=PackageStatus.DEFAULT):
        return Package(machine_name=name, name=name.title(), status=status, config=config,
                       dependencies={"node"} if name == "article" else set())

    def test_write_export(self, settings, active, collection, tmp_path):
        generator = PackageGenerator(settings, PackageRenderer(active))
        bundle = PackageAssigner(settings).apply_bundle()
        article = self.make("article", ["node.type.article"], PackageStatus.OVERRIDDEN)

        report = generator.generate("write", [article], collection, bundle)

        assert report.success
        assert report.location == str(tmp_path / "export")
        assert article.status == PackageStatus.DEFAULT

        package_dir = tmp_path / "export" / "article"
        info = yaml.safe_load((package_dir / "article.info.yml").read_text())
        assert info["name"] == "Article"
        assert info["type"] == "package"
        assert info["dependencies"] == ["node"]
        assert info["config"] == ["node.type.article"]
        item = yaml.safe_load((package_dir / "config" / "install" / "node.type.article.yml").read_text())
        assert item == {"type": "article", "name": "Article"}

    def test_archive_keeps_status(self, settings, active, collection):
        generator = PackageGenerator(settings, PackageRenderer(active))
        bundle = PackageAssigner(settings).apply_bundle()
        article = self.make("article", ["node.type.article"], PackageStatus.OVERRIDDEN)

        report = generator.generate("archive", [article], collection, bundle)

        assert report.success
        assert article.status == PackageStatus.OVERRIDDEN

    def test_skips_excluded(self, settings, active, collection):
        generator = PackageGenerator(settings, PackageRenderer(active))
        bundle = PackageAssigner(settings).apply_bundle()
        site = self.make("site", ["system.site"], PackageStatus.NO_EXPORT)

        report = generator.generate("archive", [site], collection, bundle)

        assert report.results == []
        assert report.skipped == ["site"]
        assert report.location is None

    def test_render_failure_isolated(self, settings, active, collection):
        generator = PackageGenerator(settings, PackageRenderer(active))
        bundle = PackageAssigner(settings).apply_bundle()
        broken = self.make("broken", ["no.such.item"])
        article = self.make("article", ["node.type.article"])

        report = generator.generate("archive", [broken, article], collection, bundle)

        assert not report.success
        assert [r.package_name for r in report.results] == ["broken", "article"]
        assert "could not be rendered" in report.results[0].message
        assert report.results[1].success

    def test_profile(self, settings, active, collection, tmp_path):
        generator = PackageGenerator(settings, PackageRenderer(active))
        bundle = PackageAssigner(settings).apply_bundle()
        packages = [self.make("article", ["node.type.article"]), self.make("site", ["system.site"])]

        report = generator.generate("archive", packages, collection, bundle, include_profile=True)

        assert [r.package_name for r in report.results] == ["mysite", "article", "site"]
        assert report.results[0].message == "Profile My site written to archive."

        members = archive_members(tmp_path / "tmp" / "mysite.tar.gz")
        profile_info = yaml.safe_load(members["mysite/mysite.info.yml"])
        assert profile_info["type"] == "profile"
        assert profile_info["dependencies"] == ["article", "site"]
        assert "article/config/install/node.type.article.yml" in members

    def test_profile_name_collision(self, settings, active, collection, tmp_path):
        generator = PackageGenerator(settings, PackageRenderer(active))
        bundle = PackageAssigner(settings).apply_bundle()
        packages = [self.make("mysite", ["system.site"]), self.make("article", ["node.type.article"])]

        with pytest.raises(GenerationError, match="same machine name"):
            generator.generate("archive", packages, collection, bundle, include_profile=True)

        assert not (tmp_path / "tmp" / "mysite.tar.gz").exists()

    def test_duplicate_package_names_reported_in_order(self, settings, active, collection):
        generator = PackageGenerator(settings, PackageRenderer(active))
        bundle = PackageAssigner(settings).apply_bundle()
        first = self.make("site", ["system.site"])
        second = self.make("site", ["no.such.item"])

        report = generator.generate("archive", [first, second], collection, bundle)

        assert [r.success for r in report.results] == [True, False]

    def test_report_dict(self, settings, active, collection):
        generator = PackageGenerator(settings, PackageRenderer(active))
        bundle = PackageAssigner(settings).apply_bundle()

        report = generator.generate("archive", [self.make("site", ["system.site"])], collection, bundle)

        data = report.to_dict()
        assert data["method"] == "archive"
        assert data["success"] is True
        assert data["results"][0]["package"] == "site"
