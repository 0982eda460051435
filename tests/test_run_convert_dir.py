from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

import pypdfium2 as pdfium
from PIL import Image

from webp_to_pdf.artifacts import build_run_manifest, write_run_manifest_json
from webp_to_pdf.contracts import ConvertConfig, WriteError
from webp_to_pdf.data_access import scan_image_files, write_output_bytes
from webp_to_pdf.module import run_convert_webp_dir


def _write_webp(path: Path, width: int, height: int) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", (width, height), (240, 200, 10)).save(path, format="WEBP")


class TestRunConvertWebpDir(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_converts_directory_in_lexicographic_order(self) -> None:
        _write_webp(self.root / "b.webp", 64, 32)
        _write_webp(self.root / "a" / "c.webp", 64, 256)
        _write_webp(self.root / "A.WEBP", 64, 64)
        (self.root / "notes.txt").write_text("ignored", encoding="utf-8")

        result = run_convert_webp_dir(config=ConvertConfig(), input_dir=self.root)

        self.assertTrue(result.ok, result.errors)
        self.assertTrue(result.written)
        self.assertEqual([o.source_path for o in result.images], ["A.WEBP", "a/c.webp", "b.webp"])
        self.assertEqual([o.page_count for o in result.images], [1, 4, 1])
        self.assertEqual(result.output_path, str((self.root / "output.pdf").resolve()))
        self.assertGreaterEqual(result.elapsed_s, 0.0)

        pdf = pdfium.PdfDocument(str(self.root / "output.pdf"))
        try:
            self.assertEqual(len(pdf), 6)
        finally:
            pdf.close()

    def test_non_recursive_scan(self) -> None:
        _write_webp(self.root / "top.webp", 10, 10)
        _write_webp(self.root / "sub" / "deep.webp", 10, 10)

        result = run_convert_webp_dir(config=ConvertConfig(recursive=False), input_dir=self.root, output_name="x.pdf")

        self.assertTrue(result.ok)
        self.assertEqual([o.source_path for o in result.images], ["top.webp"])

    def test_missing_input_dir(self) -> None:
        result = run_convert_webp_dir(config=ConvertConfig(), input_dir=self.root / "missing")

        self.assertFalse(result.ok)
        self.assertEqual([e.code for e in result.errors], ["CONVERT_INPUT_NOT_FOUND"])
        self.assertIsNone(result.output_path)

    def test_no_images_found_writes_nothing(self) -> None:
        (self.root / "readme.md").write_text("x", encoding="utf-8")

        result = run_convert_webp_dir(config=ConvertConfig(), input_dir=self.root)

        self.assertFalse(result.ok)
        self.assertEqual([e.code for e in result.errors], ["CONVERT_NO_IMAGES_FOUND"])
        self.assertFalse((self.root / "output.pdf").exists())

    def test_declined_overwrite_leaves_existing_file(self) -> None:
        _write_webp(self.root / "a.webp", 10, 10)
        existing = self.root / "output.pdf"
        existing.write_bytes(b"previous contents")
        asked: list[Path] = []

        def decline(path: Path) -> bool:
            asked.append(path)
            return False

        result = run_convert_webp_dir(config=ConvertConfig(), input_dir=self.root, confirm_overwrite=decline)

        self.assertFalse(result.ok)
        self.assertEqual([e.code for e in result.errors], ["CONVERT_OVERWRITE_DECLINED"])
        self.assertEqual(asked, [existing.resolve()])
        self.assertEqual(existing.read_bytes(), b"previous contents")

        # No confirmation provider means no overwrite either.
        result = run_convert_webp_dir(config=ConvertConfig(), input_dir=self.root)
        self.assertEqual(result.errors[-1].code, "CONVERT_OVERWRITE_DECLINED")
        self.assertEqual(existing.read_bytes(), b"previous contents")

    def test_accepted_overwrite_replaces_file(self) -> None:
        _write_webp(self.root / "a.webp", 10, 10)
        existing = self.root / "output.pdf"
        existing.write_bytes(b"previous contents")

        result = run_convert_webp_dir(
            config=ConvertConfig(), input_dir=self.root, confirm_overwrite=lambda _p: True
        )

        self.assertTrue(result.ok)
        self.assertTrue(existing.read_bytes().startswith(b"%PDF"))

    def test_write_failure_is_reported(self) -> None:
        _write_webp(self.root / "a.webp", 10, 10)

        with patch("webp_to_pdf.module.write_output_bytes", side_effect=WriteError("disk full")), self.assertLogs(
            "webp_to_pdf.module", level="ERROR"
        ):
            result = run_convert_webp_dir(config=ConvertConfig(), input_dir=self.root)

        self.assertFalse(result.ok)
        self.assertFalse(result.written)
        self.assertEqual(result.errors[-1].code, "CONVERT_WRITE_FAILED")
        self.assertEqual(len(result.images), 1)
        self.assertFalse((self.root / "output.pdf").exists())

    def test_skipped_images_are_warnings_only(self) -> None:
        _write_webp(self.root / "good.webp", 10, 10)
        (self.root / "bad.webp").write_bytes(b"not a webp")

        with self.assertLogs("webp_to_pdf.module", level="WARNING"):
            result = run_convert_webp_dir(config=ConvertConfig(), input_dir=self.root)

        self.assertTrue(result.ok)
        self.assertEqual([e.code for e in result.errors], ["CONVERT_DECODE_FAILED"])
        self.assertEqual(result.page_count, 1)

    def test_manifest_round_trips_as_json(self) -> None:
        _write_webp(self.root / "a.webp", 10, 10)
        result = run_convert_webp_dir(config=ConvertConfig(), input_dir=self.root)

        out_manifest = self.root / "manifests" / "run.json"
        write_run_manifest_json(result=result, out_manifest=out_manifest)

        d = json.loads(out_manifest.read_text(encoding="utf-8"))
        self.assertTrue(d["ok"])
        self.assertEqual(d["page_count"], 1)
        self.assertEqual(d["meta"]["page_width"], 10.0)
        self.assertEqual(d["meta"]["batch_size"], 3)
        self.assertEqual(d["image_count"], 1)
        self.assertEqual(d["converted_count"], 1)
        self.assertEqual(d["skipped"], [])
        self.assertNotIn("images", d)

    def test_manifest_lists_only_skipped_images(self) -> None:
        _write_webp(self.root / "a.webp", 10, 10)
        _write_webp(self.root / "c.webp", 10, 10)
        (self.root / "b.webp").write_bytes(b"broken")
        with self.assertLogs("webp_to_pdf.module", level="WARNING"):
            result = run_convert_webp_dir(config=ConvertConfig(), input_dir=self.root)

        d = build_run_manifest(result)
        self.assertEqual(d["image_count"], 3)
        self.assertEqual(d["converted_count"], 2)
        self.assertEqual(d["skipped"], [{"source_path": "b.webp", "error_code": "CONVERT_DECODE_FAILED"}])
        self.assertEqual([e["code"] for e in d["errors"]], ["CONVERT_DECODE_FAILED"])


class TestDataAccess(unittest.TestCase):
    def test_scan_excludes_output_and_sorts(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            _write_webp(root / "z.webp", 4, 4)
            _write_webp(root / "m.webp", 4, 4)
            files = scan_image_files(root, exclude=root / "z.webp")
            self.assertEqual([p.name for p in files], ["m.webp"])

    def test_write_output_bytes_wraps_os_errors(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            blocker = Path(tmp) / "file.txt"
            blocker.write_text("x", encoding="utf-8")
            with self.assertRaises(WriteError):
                write_output_bytes(blocker / "out.pdf", b"%PDF")


if __name__ == "__main__":
    unittest.main()
