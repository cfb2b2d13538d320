import pytest

from backoffice.services import file_naming_service
from backoffice.services.file_naming_service import FileNamingError


class TestGenerateName:

    @pytest.mark.parametrize(
        "filename,expected",
        [
            ("photo.JPG", "DRES00001.jpg"),
            ("IMG_2024.jpeg", "DRES00001.jpeg"),
            ("front.view.png", "DRES00001.png"),
            ("a.WebP", "DRES00001.webp"),
        ],
    )
    def test_uses_sku_and_lowercase_extension(self, filename, expected):
        assert file_naming_service.generate_product_image_name("DRES00001", filename) == expected

    @pytest.mark.parametrize("sku,filename", [("", "a.jpg"), (None, "a.jpg"), ("DRES00001", ""), ("DRES00001", "noext")])
    def test_invalid_input(self, sku, filename):
        with pytest.raises(FileNamingError):
            file_naming_service.generate_product_image_name(sku, filename)


class TestRename:

    def test_rename_replaces_old_image(self, app, tmp_path):
        (tmp_path / "DRES00001.jpg").write_bytes(b"old")
        (tmp_path / "DRES00002.jpg").write_bytes(b"other product")
        upload = tmp_path / "tmp-upload.png"
        upload.write_bytes(b"new")

        new_name = file_naming_service.rename_to_sku_format(str(upload), "DRES00001")

        assert new_name == "DRES00001.png"
        assert (tmp_path / "DRES00001.png").read_bytes() == b"new"
        assert not (tmp_path / "DRES00001.jpg").exists()
        assert not upload.exists()
        assert (tmp_path / "DRES00002.jpg").exists()

    def test_rename_missing_file(self, app, tmp_path):
        with pytest.raises(FileNamingError) as exc:
            file_naming_service.rename_to_sku_format(str(tmp_path / "missing.jpg"), "DRES00001")
        assert exc.value.code == "FILE_NOT_FOUND"

    def test_delete_old_image_lists_removed_files(self, app, tmp_path):
        (tmp_path / "GEN00005.jpg").write_bytes(b"1")
        (tmp_path / "GEN00005.webp").write_bytes(b"2")

        deleted = file_naming_service.delete_old_product_image("GEN00005", str(tmp_path))

        assert sorted(deleted) == ["GEN00005.jpg", "GEN00005.webp"]
        assert list(tmp_path.iterdir()) == []
