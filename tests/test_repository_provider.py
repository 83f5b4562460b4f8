"""Tests for RepositoryFileProvider — SQL-backed repository with trash."""

from __future__ import annotations

import io
import zipfile

import pytest
from sqlmodel import Session, select

from genfile.exceptions import (
    AccessDeniedError,
    ConflictError,
    InvalidPathError,
    NotFoundError,
    PathAlreadyExistsError,
)
from genfile.models import RepositoryEntry
from genfile.options import GetFileOptions, GetTreeOptions, TreeFilter
from genfile.path import GenericFilePath
from genfile.permissions import GenericFilePermission
from genfile.protocol import GenericFileProvider
from genfile.providers.repository import (
    RepositoryFile,
    RepositoryFileProvider,
    RepositoryFolder,
    get_trash_file_id,
)
from genfile.types import GenericFileMetadata


def p(value: str) -> GenericFilePath:
    return GenericFilePath.parse_required(value)


@pytest.fixture
def seeded(repo: RepositoryFileProvider) -> RepositoryFileProvider:
    """``/public/a.txt``, ``/public/reports/q1.csv``, hidden ``/public/.hidden``, ``/home``."""
    repo.write_file(p("/public/a.txt"), b"alpha")
    repo.write_file(p("/public/reports/q1.csv"), b"q,1")
    repo.write_file(p("/public/.hidden"), b"")
    repo.create_folder(p("/home"))
    return repo


def _hide(repo: RepositoryFileProvider, path: str) -> None:
    with Session(repo.engine) as session:
        entry = session.exec(select(RepositoryEntry).where(RepositoryEntry.path == path)).one()
        entry.hidden = True
        session.add(entry)
        session.commit()
    repo.clear_tree_cache()


def _names(tree) -> list[str]:
    return [c.file.name for c in tree.children or []]


# ---------------------------------------------------------------------------
# Basics
# ---------------------------------------------------------------------------


class TestBasics:
    def test_protocol(self, repo):
        assert isinstance(repo, GenericFileProvider)
        assert repo.type == "repository"

    def test_owns_slash_paths(self, repo):
        assert repo.owns(p("/anything"))
        assert not repo.owns(p("local://a"))

    def test_root_file(self, repo):
        root = repo.get_file(p("/"), GetFileOptions())
        assert isinstance(root, RepositoryFolder)
        assert root.name == "/"
        assert root.path == "/"
        assert root.title == "Repository"
        assert root.parent_path is None
        assert not root.can_edit and not root.can_delete and not root.can_add_children

    def test_open_is_idempotent(self, repo):
        repo.open()
        assert repo.does_folder_exist(p("/"))

    def test_from_url(self, tmp_path):
        provider = RepositoryFileProvider.from_url(f"sqlite:///{tmp_path / 'repo.db'}", name="Main")
        try:
            provider.create_folder(p("/x"))
            assert provider.does_folder_exist(p("/x"))
            assert provider.get_file(p("/"), GetFileOptions()).title == "Main"
        finally:
            provider.close()

    def test_file_entity(self, seeded):
        file = seeded.get_file(p("/public/a.txt"), GetFileOptions())
        assert isinstance(file, RepositoryFile)
        assert file.provider == "repository"
        assert file.parent_path == "/public"
        assert file.extension == "txt"
        assert file.file_size == 5
        assert file.can_edit and file.can_delete
        assert file.object_id

    def test_get_missing(self, repo):
        with pytest.raises(NotFoundError):
            repo.get_file(p("/nope"), GetFileOptions())


# ---------------------------------------------------------------------------
# Trees
# ---------------------------------------------------------------------------


class TestTree:
    def test_full_tree(self, seeded):
        tree = seeded.get_tree(GetTreeOptions())
        assert tree.file.path == "/"
        assert _names(tree) == ["home", "public"]
        public = tree.children[1]
        assert _names(public) == [".hidden", "a.txt", "reports"]
        assert _names(public.children[2]) == ["q1.csv"]

    def test_hidden_flag_filters(self, seeded):
        _hide(seeded, "/public/a.txt")
        tree = seeded.get_tree(GetTreeOptions(base_path="/public"))
        assert _names(tree) == [".hidden", "reports"]
        tree = seeded.get_tree(GetTreeOptions(base_path="/public", include_hidden=True))
        assert _names(tree) == [".hidden", "a.txt", "reports"]

    def test_max_depth_zero(self, seeded):
        tree = seeded.get_tree(GetTreeOptions(max_depth=0))
        assert tree.children is None

    def test_max_depth_one(self, seeded):
        tree = seeded.get_tree(GetTreeOptions(max_depth=1))
        assert _names(tree) == ["home", "public"]
        assert tree.children[1].children is None
        assert tree.children[1].file.has_children

    def test_expanded_path(self, seeded):
        tree = seeded.get_tree(GetTreeOptions(max_depth=1, expanded_path="/public/reports"))
        public = tree.children[1]
        reports = public.children[2]
        assert _names(reports) == ["q1.csv"]
        assert tree.children[0].children is None

    def test_folders_filter(self, seeded):
        tree = seeded.get_tree(GetTreeOptions(base_path="/public", filter=TreeFilter.FOLDERS))
        assert _names(tree) == ["reports"]

    def test_files_filter(self, seeded):
        tree = seeded.get_tree(GetTreeOptions(base_path="/public", filter=TreeFilter.FILES))
        assert _names(tree) == [".hidden", "a.txt"]

    def test_include_metadata(self, seeded):
        seeded.set_file_metadata(p("/public/a.txt"), GenericFileMetadata({"k": "v"}))
        tree = seeded.get_tree(GetTreeOptions(base_path="/public", include_metadata=True))
        assert tree.children[1].file.metadata.metadata == {"k": "v"}

    def test_missing_base_path(self, seeded):
        with pytest.raises(NotFoundError):
            seeded.get_tree(GetTreeOptions(base_path="/missing"))

    def test_unowned_base_path(self, seeded):
        with pytest.raises(NotFoundError):
            seeded.get_tree(GetTreeOptions(base_path="local://x"))

    def test_root_trees(self, seeded):
        trees = seeded.get_root_trees(GetTreeOptions(base_path="/public", max_depth=0))
        assert [t.file.path for t in trees] == ["/"]

    def test_cache_returns_copies(self, seeded):
        options = GetTreeOptions()
        first = seeded.get_tree(options)
        first.file.custom_properties["x"] = 1
        assert seeded.get_tree(options).file.custom_properties == {}

    def test_cache_invalidated_on_write(self, seeded):
        options = GetTreeOptions(base_path="/home")
        assert _names(seeded.get_tree(options)) == []
        seeded.write_file(p("/home/new.txt"), b"")
        assert _names(seeded.get_tree(options)) == ["new.txt"]


# ---------------------------------------------------------------------------
# Content and metadata
# ---------------------------------------------------------------------------


class TestContent:
    def test_file_content(self, seeded):
        with seeded.get_file_content(p("/public/a.txt"), False) as content:
            assert content.read() == b"alpha"
            assert content.file_name == "a.txt"
            assert content.mime_type == "text/plain"

    def test_compressed_file(self, seeded):
        content = seeded.get_file_content_compressed(p("/public/a.txt"))
        assert content.file_name == "a.txt.zip"
        assert content.mime_type == "application/zip"
        with zipfile.ZipFile(io.BytesIO(content.read())) as archive:
            assert archive.read("a.txt") == b"alpha"

    def test_folder_is_zipped(self, seeded):
        content = seeded.get_file_content(p("/public"), False)
        with zipfile.ZipFile(io.BytesIO(content.read())) as archive:
            names = set(archive.namelist())
            assert "public/a.txt" in names
            assert "public/reports/q1.csv" in names
            assert archive.read("public/reports/q1.csv") == b"q,1"

    def test_metadata_round_trip(self, seeded):
        path = p("/public/a.txt")
        seeded.set_file_metadata(path, GenericFileMetadata({"a": "1", "b": "2"}))
        seeded.set_file_metadata(path, GenericFileMetadata({"c": "3"}))
        assert seeded.get_file_metadata(path).metadata == {"c": "3"}

    def test_write_existing_requires_overwrite(self, seeded):
        with pytest.raises(PathAlreadyExistsError):
            seeded.write_file(p("/public/a.txt"), b"x")
        seeded.write_file(p("/public/a.txt"), b"beta", overwrite=True)
        assert seeded.get_file_content(p("/public/a.txt"), False).read() == b"beta"


# ---------------------------------------------------------------------------
# Folders
# ---------------------------------------------------------------------------


class TestCreateFolder:
    def test_creates_parents(self, repo):
        assert repo.create_folder(p("/a/b/c")) is True
        assert repo.does_folder_exist(p("/a"))
        assert repo.does_folder_exist(p("/a/b/c"))

    def test_existing(self, repo):
        repo.create_folder(p("/a"))
        assert repo.create_folder(p("/a")) is False

    def test_file_in_the_way(self, seeded):
        with pytest.raises(ConflictError):
            seeded.create_folder(p("/public/a.txt/sub"))

    def test_trash_namespace_rejected(self, repo):
        with pytest.raises(InvalidPathError):
            repo.create_folder(p("/.trash/x"))

    def test_file_is_not_folder(self, seeded):
        assert seeded.does_folder_exist(p("/public/a.txt")) is False


# ---------------------------------------------------------------------------
# Trash
# ---------------------------------------------------------------------------


class TestTrash:
    def test_soft_delete_and_list(self, seeded):
        seeded.delete_file(p("/public/reports"), False)
        assert not seeded.does_folder_exist(p("/public/reports"))

        deleted = seeded.get_deleted_files()
        assert len(deleted) == 1
        entry = deleted[0]
        assert entry.name == "reports"
        assert entry.path.startswith("/.trash/pho:")
        assert entry.path.endswith("/public/reports")
        assert entry.deleted_date is not None
        assert [f.path for f in entry.original_location] == ["/", "/public"]

    def test_restore(self, seeded):
        seeded.delete_file(p("/public/reports"), False)
        trash_path = p(seeded.get_deleted_files()[0].path)
        seeded.restore_file(trash_path)

        assert seeded.get_deleted_files() == []
        content = seeded.get_file_content(p("/public/reports/q1.csv"), False)
        assert content.read() == b"q,1"

    def test_restore_from_descendant_trash_path(self, seeded):
        seeded.delete_file(p("/public/reports"), False)
        trash_path = seeded.get_deleted_files()[0].path
        seeded.restore_file(p(trash_path + "/q1.csv"))
        assert seeded.does_folder_exist(p("/public/reports"))

    def test_restore_onto_occupied_path(self, seeded):
        seeded.delete_file(p("/public/a.txt"), False)
        seeded.write_file(p("/public/a.txt"), b"new")
        trash_path = p(seeded.get_deleted_files()[0].path)
        with pytest.raises(PathAlreadyExistsError):
            seeded.restore_file(trash_path)

    def test_restore_recreates_missing_parent(self, seeded):
        seeded.delete_file(p("/public/reports/q1.csv"), False)
        seeded.delete_file(p("/public"), True)
        deleted = seeded.get_deleted_files()
        assert [f.path for f in deleted[0].original_location] == ["/", "/public", "/public/reports"]
        seeded.restore_file(p(deleted[0].path))
        assert seeded.does_folder_exist(p("/public/reports"))

    def test_original_location_synthesizes_missing_folders(self, seeded):
        seeded.delete_file(p("/public/reports/q1.csv"), False)
        seeded.delete_file(p("/public"), True)
        location = seeded.get_deleted_files()[0].original_location
        assert location[0].name == "/"
        assert location[2].name == "reports"
        assert location[2].is_folder

    def test_delete_permanently_from_trash(self, seeded):
        seeded.delete_file(p("/public/a.txt"), False)
        seeded.delete_file_permanently(p(seeded.get_deleted_files()[0].path))
        assert seeded.get_deleted_files() == []

    def test_permanent_delete(self, seeded):
        seeded.delete_file(p("/public"), True)
        assert seeded.get_deleted_files() == []
        assert not seeded.does_folder_exist(p("/public"))

    def test_root_cannot_be_deleted(self, repo):
        with pytest.raises(AccessDeniedError):
            repo.delete_file(p("/"), False)

    def test_delete_missing(self, repo):
        with pytest.raises(NotFoundError):
            repo.delete_file(p("/missing"), False)

    def test_trash_id_parsing(self):
        assert get_trash_file_id(p("/.trash/pho:abc/home/a.txt")) == "abc"
        with pytest.raises(InvalidPathError):
            get_trash_file_id(p("/.trash/noid"))
        with pytest.raises(NotFoundError):
            get_trash_file_id(p("/home/a.txt"))
        with pytest.raises(NotFoundError):
            get_trash_file_id(p("/home/.trash"))

    def test_restore_unknown_id(self, repo):
        with pytest.raises(NotFoundError):
            repo.restore_file(p("/.trash/pho:unknown/a.txt"))


# ---------------------------------------------------------------------------
# Rename / copy / move
# ---------------------------------------------------------------------------


class TestRename:
    def test_rename_folder_moves_descendants(self, seeded):
        assert seeded.rename_file(p("/public/reports"), "archive") is True
        assert seeded.does_folder_exist(p("/public/archive"))
        assert seeded.get_file_content(p("/public/archive/q1.csv"), False).read() == b"q,1"
        assert not seeded.does_folder_exist(p("/public/reports"))

    def test_rename_clash(self, seeded):
        seeded.write_file(p("/public/b.txt"), b"")
        with pytest.raises(PathAlreadyExistsError):
            seeded.rename_file(p("/public/a.txt"), "b.txt")

    @pytest.mark.parametrize("name", ["", "a/b", "..", "bad\x01"])
    def test_invalid_name(self, seeded, name):
        with pytest.raises(InvalidPathError):
            seeded.rename_file(p("/public/a.txt"), name)

    def test_rename_root(self, repo):
        with pytest.raises(AccessDeniedError):
            repo.rename_file(p("/"), "x")


class TestCopyMove:
    def test_copy_folder(self, seeded):
        seeded.copy_file(p("/public/reports"), p("/home"))
        assert seeded.get_file_content(p("/home/reports/q1.csv"), False).read() == b"q,1"
        assert seeded.does_folder_exist(p("/public/reports"))

    def test_copy_keeps_metadata(self, seeded):
        seeded.set_file_metadata(p("/public/a.txt"), GenericFileMetadata({"k": "v"}))
        seeded.copy_file(p("/public/a.txt"), p("/home"))
        assert seeded.get_file_metadata(p("/home/a.txt")).metadata == {"k": "v"}

    def test_copy_clash(self, seeded):
        seeded.write_file(p("/home/a.txt"), b"")
        with pytest.raises(PathAlreadyExistsError):
            seeded.copy_file(p("/public/a.txt"), p("/home"))

    def test_destination_must_be_folder(self, seeded):
        with pytest.raises(ConflictError):
            seeded.copy_file(p("/public/reports"), p("/public/a.txt"))

    def test_destination_must_exist(self, seeded):
        with pytest.raises(NotFoundError):
            seeded.move_file(p("/public/a.txt"), p("/nowhere"))

    def test_move_folder(self, seeded):
        seeded.move_file(p("/public/reports"), p("/home"))
        assert seeded.does_folder_exist(p("/home/reports"))
        assert not seeded.does_folder_exist(p("/public/reports"))
        file = seeded.get_file(p("/home/reports/q1.csv"), GetFileOptions())
        assert file.parent_path == "/home/reports"

    def test_move_into_itself(self, seeded):
        with pytest.raises(ConflictError):
            seeded.move_file(p("/public"), p("/public/reports"))


# ---------------------------------------------------------------------------
# Access
# ---------------------------------------------------------------------------


class TestAccess:
    @pytest.fixture
    def owned(self, engine) -> RepositoryFileProvider:
        admin = RepositoryFileProvider(engine, user="admin")
        admin.open()
        admin.write_file(p("/admin/secret.txt"), b"s")
        return admin

    def test_owner_has_access(self, owned):
        assert owned.has_access(p("/admin/secret.txt"), {GenericFilePermission.WRITE})

    def test_other_user_reads_only(self, engine, owned):
        guest = RepositoryFileProvider(engine, user="guest")
        path = p("/admin/secret.txt")
        assert guest.has_access(path, {GenericFilePermission.READ})
        assert not guest.has_access(path, {GenericFilePermission.READ, GenericFilePermission.WRITE})
        assert not guest.get_file(path, GetFileOptions()).can_edit
        with pytest.raises(AccessDeniedError):
            guest.delete_file(path, False)
        with pytest.raises(AccessDeniedError):
            guest.write_file(p("/admin/other.txt"), b"")

    def test_unknown_path_has_no_access(self, repo):
        assert not repo.has_access(p("/missing"), {GenericFilePermission.READ})

    def test_deleted_by_recorded(self, owned):
        owned.delete_file(p("/admin/secret.txt"), False)
        assert owned.get_deleted_files()[0].deleted_by == "admin"
