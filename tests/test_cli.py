from __future__ import annotations

import io
import json
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path
from unittest.mock import MagicMock, patch

from PIL import Image

from assemble import cli as assemble_cli
from classify import cli as classify_cli
from contracts.documents import StageReport
from rasterize import cli as rasterize_cli
from staging import cli as pipeline_cli
from staging.cli import EXIT_DOCUMENT_FAILURES, EXIT_FATAL, EXIT_OK
from staging.errors import DiscoveryError

from helpers import make_image, make_pdf, read_manifest


def _write_config(root: Path, **overrides) -> Path:
    raw = {
        "paths": {"input": "incoming", "staging": "staging"},
        "rasterize": {"resolutions": [{"dpi": 36, "quality": 70}, {"dpi": 72, "quality": 70}]},
        "classify": {"resolutionFolder": "r36", "labels": ["invoice"]},
    }
    raw.update(overrides)
    cfg = root / "config" / "root.json"
    cfg.parent.mkdir(parents=True, exist_ok=True)
    cfg.write_text(json.dumps(raw), encoding="utf-8")
    return cfg


class TestStageClis(unittest.TestCase):
    def test_missing_config_is_fatal(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            self.assertEqual(assemble_cli.main(["--project-root", tmp]), EXIT_FATAL)

    def test_missing_input_directory_is_fatal(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            _write_config(Path(tmp))
            self.assertEqual(assemble_cli.main(["--project-root", tmp]), EXIT_FATAL)

    def test_document_failures_yield_partial_exit_code(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            _write_config(root)
            make_pdf(root / "incoming" / "ok.pdf", [(72, 72)])
            (root / "incoming" / "empty").mkdir()

            self.assertEqual(assemble_cli.main(["--project-root", tmp]), EXIT_DOCUMENT_FAILURES)
            self.assertTrue((root / "staging" / "ok.pdf" / "input" / "document.pdf").is_file())

    def test_assemble_then_rasterize(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            cfg = _write_config(root)
            make_pdf(root / "incoming" / "a.pdf", [(72, 144)])
            log_file = root / "logs" / "run.log"

            self.assertEqual(
                assemble_cli.main(["--project-root", tmp, "--config", str(cfg), "--log-file", str(log_file)]), EXIT_OK
            )
            self.assertEqual(rasterize_cli.main(["--project-root", tmp, "-v"]), EXIT_OK)

            m = read_manifest(root / "staging" / "a.pdf")
            self.assertEqual(m["pages"], [{"index": 1, "r36": "p1.webp", "r72": "p1.webp"}])
            self.assertTrue(log_file.is_file())

    def test_classify_without_endpoint_is_fatal(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            _write_config(root)
            (root / "staging").mkdir()
            self.assertEqual(classify_cli.main(["--project-root", tmp]), EXIT_FATAL)

    def test_check_endpoint_prints_raw_answer(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            _write_config(root)
            make_pdf(root / "incoming" / "a.pdf", [(72, 72)])
            self.assertEqual(assemble_cli.main(["--project-root", tmp]), EXIT_OK)
            self.assertEqual(rasterize_cli.main(["--project-root", tmp]), EXIT_OK)
            before = (root / "staging" / "a.pdf" / "manifest.json").read_bytes()

            classifier = MagicMock()
            classifier.model_id.return_value = "fake-vlm"
            classifier.classify.return_value = " Invoice "
            out = io.StringIO()
            with patch("classify.module._get_classifier", return_value=classifier), redirect_stdout(out):
                code = classify_cli.main(["--project-root", tmp, "--check-endpoint"])

            self.assertEqual(code, EXIT_OK)
            self.assertEqual(out.getvalue(), " Invoice \n")
            self.assertEqual(classifier.classify.call_args.kwargs["allowed_labels"], ("invoice",))
            self.assertEqual(classifier.classify.call_args.kwargs["mime_type"], "image/webp")
            self.assertEqual((root / "staging" / "a.pdf" / "manifest.json").read_bytes(), before)

    def test_check_endpoint_without_staged_pages_is_fatal(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            _write_config(root)
            (root / "staging").mkdir()

            classifier = MagicMock()
            with patch("classify.module._get_classifier", return_value=classifier):
                self.assertEqual(classify_cli.main(["--project-root", tmp, "--check-endpoint"]), EXIT_FATAL)
            classifier.classify.assert_not_called()


class TestPipelineCli(unittest.TestCase):
    def test_end_to_end_reruns_are_stable(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            _write_config(root)
            make_image(root / "incoming" / "scan" / "page10.png", (40, 60))
            make_image(root / "incoming" / "scan" / "page2.jpg", (30, 30))
            make_pdf(root / "incoming" / "letter.pdf", [(144, 72), (72, 72)])

            argv = ["--project-root", tmp, "--skip-classify"]
            self.assertEqual(pipeline_cli.main(argv), EXIT_OK)

            scan = root / "staging" / "scan"
            m1 = (scan / "manifest.json").read_bytes()
            pages = read_manifest(scan)["pages"]
            self.assertEqual([p["index"] for p in pages], [1, 2])
            self.assertEqual(len(read_manifest(root / "staging" / "letter.pdf")["pages"]), 2)

            # natural order: page2 before page10; 72 dpi renders 1px per point
            with Image.open(scan / "r72" / "p1.webp") as img:
                self.assertEqual(img.size, (30, 30))
            with Image.open(scan / "r72" / "p2.webp") as img:
                self.assertEqual(img.size, (40, 60))

            # nothing changed: every stage skips and the manifest is untouched
            self.assertEqual(pipeline_cli.main(argv), EXIT_OK)
            self.assertEqual((scan / "manifest.json").read_bytes(), m1)

            self.assertEqual(pipeline_cli.main(argv + ["--force"]), EXIT_OK)
            self.assertEqual(read_manifest(scan)["pages"], pages)

    def test_classify_config_checked_before_any_stage_writes(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            _write_config(root)
            make_pdf(root / "incoming" / "a.pdf", [(72, 72)])

            self.assertEqual(pipeline_cli.main(["--project-root", tmp]), EXIT_FATAL)
            self.assertFalse((root / "staging").exists())

            # the same configuration is fine when classification is skipped
            self.assertEqual(pipeline_cli.main(["--project-root", tmp, "--skip-classify"]), EXIT_OK)
            self.assertTrue((root / "staging" / "a.pdf" / "manifest.json").is_file())

    def test_finished_stages_summarized_when_a_later_stage_aborts(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            _write_config(root)
            args = pipeline_cli.build_arg_parser().parse_args(["--project-root", tmp])
            done = StageReport(stage="assemble", succeeded=["a.pdf"], skipped=[], failed=[])

            def aborting_stage(ctx):
                raise DiscoveryError("staging root vanished")

            with self.assertLogs("staging.cli", level="INFO") as logs:
                code = pipeline_cli.run_stages(args, [lambda ctx: done, aborting_stage])

            self.assertEqual(code, EXIT_FATAL)
            self.assertTrue(any("[assemble] Processed 1 documents (1 ok, 0 skipped, 0 failed)" in m for m in logs.output))
            self.assertTrue(any("Fatal: staging root vanished" in m for m in logs.output))


if __name__ == "__main__":
    unittest.main()
