from pathlib import Path
import io
import json
import sys
import unittest
from unittest.mock import patch

SERVER_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(SERVER_DIR))

import ansi_cli

CONTEXT = {"root": "/book", "config": {}, "renderer": "html", "mdbook_version": "0.4.40"}


def book_with(content):
    return {
        "sections": [{"Chapter": {"name": "One", "content": content, "sub_items": [], "number": [1]}}],
        "__non_exhaustive": None,
    }


class SupportsTests(unittest.TestCase):
    def test_html_is_supported(self):
        self.assertEqual(ansi_cli.main(["supports", "html"]), 0)

    def test_other_renderers_are_not(self):
        with self.assertLogs("ansi_cli", level="ERROR"):
            self.assertEqual(ansi_cli.supports("epub"), 1)


class PreprocessTests(unittest.TestCase):
    def test_writes_processed_book(self):
        stdin = io.BytesIO(json.dumps([CONTEXT, book_with("```ansi\n" + r"\x1b[32mok" + "\n```\n")]).encode())
        stdout = io.BytesIO()
        self.assertEqual(ansi_cli.preprocess(stdin, stdout), 0)

        book = json.loads(stdout.getvalue())
        content = book["sections"][0]["Chapter"]["content"]
        self.assertEqual(
            content,
            '<pre class="ansi"><code><span></span><span style="color: green;">ok\n</span></code></pre>\n',
        )
        self.assertEqual(book["sections"][0]["Chapter"]["number"], [1])

    def test_reads_and_writes_utf8_bytes(self):
        raw = json.dumps([CONTEXT, book_with("```ansi\nhéllo ✓\n```\n")], ensure_ascii=False)
        stdout = io.BytesIO()
        self.assertEqual(ansi_cli.preprocess(io.BytesIO(raw.encode("utf-8")), stdout), 0)

        output = stdout.getvalue()
        self.assertIn("<span>héllo ✓\n</span>".encode("utf-8"), output)
        content = json.loads(output.decode("utf-8"))["sections"][0]["Chapter"]["content"]
        self.assertEqual(content, '<pre class="ansi"><code><span>héllo ✓\n</span></code></pre>\n')

    def test_invalid_input_fails_without_output(self):
        stdout = io.BytesIO()
        with self.assertLogs("ansi_cli", level="ERROR"):
            self.assertEqual(ansi_cli.preprocess(io.BytesIO(b"{not json"), stdout), 1)
        self.assertEqual(stdout.getvalue(), b"")

    def test_render_failure_fails_without_output(self):
        stdin = io.BytesIO(json.dumps([CONTEXT, book_with("```ansi\n" + r"\x1b[38;5;256m" + "\n```\n")]).encode())
        stdout = io.BytesIO()
        with self.assertLogs("ansi_cli", level="ERROR") as logs:
            self.assertEqual(ansi_cli.preprocess(stdin, stdout), 1)
        self.assertIn("One", logs.output[0])
        self.assertEqual(stdout.getvalue(), b"")

    def test_main_defaults_to_preprocessing(self):
        with patch.object(ansi_cli, "preprocess", return_value=0) as preprocess_mock:
            self.assertEqual(ansi_cli.main([]), 0)
        preprocess_mock.assert_called_once_with()


class ServeTests(unittest.TestCase):
    def test_serve_runs_uvicorn(self):
        with patch("uvicorn.run") as run_mock:
            self.assertEqual(ansi_cli.main(["serve", "--host", "0.0.0.0", "--port", "9000"]), 0)
        _, kwargs = run_mock.call_args
        self.assertEqual(kwargs, {"host": "0.0.0.0", "port": 9000})


if __name__ == "__main__":
    unittest.main()
