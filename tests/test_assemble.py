from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path

from assemble.merge import image_to_pdf_bytes
from assemble.module import assemble_document, list_folder_parts, run_assemble_stage
from contracts.documents import Document, DocumentKind, PartKind
from staging.errors import AssemblyError, DiscoveryError

from helpers import make_context, make_image, make_pdf, pdf_page_sizes


def _folder_doc(input_root: Path, name: str) -> Document:
    return Document(name=name, kind=DocumentKind.FOLDER_OF_PARTS, source_path=input_root / name, doc_key=name)


class TestFolderParts(unittest.TestCase):
    def test_parts_listed_in_natural_order(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            folder = Path(tmp)
            for name in ("p10.png", "p2.JPG", "p1.pdf", "readme.txt", ".DS_Store", "p3.webp"):
                (folder / name).write_bytes(b"x")
            (folder / "nested").mkdir()

            parts = list_folder_parts(folder)

            self.assertEqual([p.name for p in parts], ["p1.pdf", "p2.JPG", "p3.webp", "p10.png"])
            self.assertEqual(
                [p.kind for p in parts], [PartKind.PDF, PartKind.IMAGE, PartKind.IMAGE, PartKind.IMAGE]
            )
            self.assertEqual(parts[1].extension, ".jpg")


class TestAssembleDocument(unittest.TestCase):
    def test_images_become_pages_of_their_pixel_size(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            input_root, staging_root = root / "incoming", root / "staging"
            make_image(input_root / "scan" / "B.png", (50, 50))
            make_image(input_root / "scan" / "A.jpg", (100, 200))

            result = assemble_document(
                _folder_doc(input_root, "scan"), input_root=input_root, staging_root=staging_root
            )

            out = staging_root / "scan" / "input" / "document.pdf"
            self.assertEqual(result.output_pdf_relpath, "scan/input/document.pdf")
            self.assertEqual(result.sources, ["scan/A.jpg", "scan/B.png"])
            self.assertEqual(pdf_page_sizes(out), [(100.0, 200.0), (50.0, 50.0)])

    def test_pdf_parts_concatenated_in_natural_order(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            input_root, staging_root = root / "incoming", root / "staging"
            make_pdf(input_root / "doc" / "part10.pdf", [(210, 210), (211, 211)])
            make_pdf(input_root / "doc" / "part1.pdf", [(101, 101), (102, 102), (103, 103)])
            make_pdf(input_root / "doc" / "part2.pdf", [(150, 150)])

            assemble_document(_folder_doc(input_root, "doc"), input_root=input_root, staging_root=staging_root)

            sizes = pdf_page_sizes(staging_root / "doc" / "input" / "document.pdf")
            self.assertEqual([w for w, _ in sizes], [101.0, 102.0, 103.0, 150.0, 210.0, 211.0])

    def test_mixed_folder_and_transparent_image(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            input_root, staging_root = root / "incoming", root / "staging"
            make_pdf(input_root / "mix" / "01.pdf", [(300, 400)])
            make_image(input_root / "mix" / "02.png", (20, 30), mode="RGBA")
            (input_root / "mix" / "notes.txt").write_text("ignored")

            result = assemble_document(
                _folder_doc(input_root, "mix"), input_root=input_root, staging_root=staging_root
            )

            self.assertEqual(result.sources, ["mix/01.pdf", "mix/02.png"])
            self.assertEqual(
                pdf_page_sizes(staging_root / "mix" / "input" / "document.pdf"), [(300.0, 400.0), (20.0, 30.0)]
            )

    def test_single_file_copied_verbatim(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            input_root, staging_root = root / "incoming", root / "staging"
            src = make_pdf(input_root / "single.pdf", [(100, 100), (100, 100)])
            doc = Document(name="single.pdf", kind=DocumentKind.SINGLE_FILE, source_path=src, doc_key="single.pdf")

            assemble_document(doc, input_root=input_root, staging_root=staging_root)

            out = staging_root / "single.pdf" / "input" / "document.pdf"
            self.assertEqual(out.read_bytes(), src.read_bytes())

    def test_folder_without_supported_parts_fails(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            input_root, staging_root = root / "incoming", root / "staging"
            (input_root / "empty").mkdir(parents=True)
            (input_root / "empty" / "notes.txt").write_text("x")

            with self.assertRaises(AssemblyError) as cm:
                assemble_document(_folder_doc(input_root, "empty"), input_root=input_root, staging_root=staging_root)

            self.assertIn("No supported files in folder", str(cm.exception))
            self.assertFalse((staging_root / "empty" / "input" / "document.pdf").exists())

    def test_unreadable_image_raises_assembly_error(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            bad = Path(tmp) / "bad.png"
            bad.write_bytes(b"not an image")
            with self.assertRaises(AssemblyError):
                image_to_pdf_bytes(bad)

    def test_transparent_image_becomes_one_page_pdf(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            img = make_image(Path(tmp) / "t.png", (8, 4), mode="RGBA")
            out = Path(tmp) / "t.pdf"
            out.write_bytes(image_to_pdf_bytes(img))
            self.assertEqual(pdf_page_sizes(out), [(8.0, 4.0)])


class TestRunAssembleStage(unittest.TestCase):
    def test_stage_report_index_and_unchanged_rerun(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            ctx = make_context(root)
            make_image(ctx.input_root / "scan" / "a.png", (10, 10))
            make_pdf(ctx.input_root / "contract.pdf", [(200, 300)])
            (ctx.input_root / "empty").mkdir()

            report = run_assemble_stage(ctx)

            self.assertEqual(report.succeeded, ["contract.pdf", "scan"])
            self.assertEqual([f.doc_key for f in report.failed], ["empty"])
            self.assertEqual(report.failed[0].error_type, "AssemblyError")

            index = json.loads((ctx.staging_root / "_assemble_index.json").read_text(encoding="utf-8"))
            self.assertEqual([d["docKey"] for d in index["documents"]], ["contract.pdf", "scan"])
            self.assertEqual(index["documents"][1]["outputPdfPath"], "scan/input/document.pdf")
            self.assertEqual(index["documents"][1]["sources"], ["scan/a.png"])
            self.assertEqual(index["failed"][0]["name"], "empty")
            self.assertEqual(index["createdAt"], "2024-05-01T12:00:00.000Z")

            out = ctx.staging_root / "scan" / "input" / "document.pdf"
            first = out.read_bytes()

            rerun = run_assemble_stage(ctx)
            self.assertEqual(rerun.succeeded, [])
            self.assertEqual(rerun.skipped, ["contract.pdf", "scan"])
            self.assertEqual(out.read_bytes(), first)

            forced = run_assemble_stage(ctx, force=True)
            self.assertEqual(forced.succeeded, ["contract.pdf", "scan"])

            # a changed source is re-assembled
            make_image(ctx.input_root / "scan" / "b.png", (10, 20))
            changed = run_assemble_stage(ctx)
            self.assertEqual(changed.succeeded, ["scan"])
            self.assertEqual(pdf_page_sizes(out), [(10.0, 10.0), (10.0, 20.0)])

    def test_empty_input_still_writes_index(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            ctx = make_context(Path(tmp))
            make_pdf(ctx.input_root / "old.pdf", [(72, 72)])
            run_assemble_stage(ctx)
            (ctx.input_root / "old.pdf").unlink()

            report = run_assemble_stage(ctx)

            self.assertEqual((report.succeeded, report.skipped, report.failed), ([], [], []))
            index = json.loads((ctx.staging_root / "_assemble_index.json").read_text(encoding="utf-8"))
            self.assertEqual(index["documents"], [])
            self.assertEqual(index["failed"], [])
            self.assertEqual(index["createdAt"], "2024-05-01T12:00:00.000Z")

    def test_missing_input_root_is_fatal(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            ctx = make_context(Path(tmp))
            with self.assertRaises(DiscoveryError):
                run_assemble_stage(ctx)


if __name__ == "__main__":
    unittest.main()
