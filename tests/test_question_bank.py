import os
import socket
import tempfile
import threading
import unittest
from pathlib import Path
from unittest.mock import patch

from interviewer.question_bank import (
    QuestionRecord,
    load_questions,
    normalize_row,
    parse_questions_csv,
    questions_for_domain,
)
from interviewer.question_source import HttpQuestionSource, LocalQuestionSource


SAMPLE_CSV = """Category,Question,Answer,Difficulty
Front-end,What is a closure?,A function bundled with its lexical scope.,Medium
Database and SQL,What is an index?,A structure that speeds up lookups.,Easy

and CROSS JOIN.,What does a CROSS JOIN return?,The cartesian product of both tables.,Hard
and cookies.,Where do cookies live?,In the browser cookie storage.,Easy
and something else.,What is a monad?,A monoid in the category of endofunctors.,Hard
Cloud Computing,What is IaaS?,Infrastructure as a service.,Easy
Security,,Missing question should be dropped.,Easy
"""


class _BrokenSource:
    location = "broken://questions.csv"

    def read_text(self):
        raise OSError("connection refused")


class _RawHttpServer:
    """Answers a single connection with fixed bytes, then closes it."""

    def __init__(self, payload: bytes):
        self.payload = payload
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.sock.bind(("127.0.0.1", 0))
        self.sock.listen(1)
        self.url = f"http://127.0.0.1:{self.sock.getsockname()[1]}/questions.csv"
        self.thread = threading.Thread(target=self._serve, daemon=True)
        self.thread.start()

    def _serve(self):
        conn, _ = self.sock.accept()
        with conn:
            conn.recv(65536)
            conn.sendall(self.payload)

    def close(self):
        self.thread.join(2.0)
        self.sock.close()


class TestParseQuestionsCsv(unittest.TestCase):
    def test_end_to_end_single_front_end_row(self):
        csv_text = (
            "Category,Question,Answer\n"
            "Front-end,What is a closure?,A function bundled with its lexical scope.\n"
        )
        records = parse_questions_csv(csv_text)
        self.assertEqual(
            records,
            [
                QuestionRecord(
                    domain="webdev",
                    question="What is a closure?",
                    answer="A function bundled with its lexical scope.",
                )
            ],
        )

    def test_sample_rows_are_normalized_in_order(self):
        records = parse_questions_csv(SAMPLE_CSV)
        self.assertEqual(
            [r.domain for r in records],
            ["webdev", "database", "database", "webdev", "cloud-computing"],
        )
        self.assertEqual(records[0].difficulty, "Medium")
        self.assertEqual(records[2].question, "What does a CROSS JOIN return?")

    def test_unclassifiable_malformed_row_is_dropped(self):
        records = parse_questions_csv(SAMPLE_CSV)
        self.assertFalse(any("monad" in r.question for r in records))

    def test_lowercase_headers_are_recognized(self):
        csv_text = "category,question,answer,difficulty\nNetworking,What is TCP?,A transport protocol.,Easy\n"
        records = parse_questions_csv(csv_text)
        self.assertEqual(len(records), 1)
        self.assertEqual(records[0].domain, "systems")
        self.assertEqual(records[0].difficulty, "Easy")

    def test_quoted_fields_keep_commas_and_newlines(self):
        csv_text = (
            'Category,Question,Answer\n'
            '"Algorithms","What is Big-O, informally?","An upper bound,\nfor growth."\n'
        )
        records = parse_questions_csv(csv_text)
        self.assertEqual(records[0].question, "What is Big-O, informally?")
        self.assertEqual(records[0].answer, "An upper bound,\nfor growth.")
        self.assertEqual(records[0].domain, "datascience")

    def test_normalizing_twice_is_identical(self):
        self.assertEqual(parse_questions_csv(SAMPLE_CSV), parse_questions_csv(SAMPLE_CSV))

    def test_empty_text_yields_no_records(self):
        self.assertEqual(parse_questions_csv(""), [])
        self.assertEqual(parse_questions_csv("Category,Question,Answer\n"), [])

    def test_no_deduplication(self):
        row = "DevOps,What is CI?,Continuous integration.\n"
        records = parse_questions_csv("Category,Question,Answer\n" + row + row)
        self.assertEqual(len(records), 2)


class TestNormalizeRow(unittest.TestCase):
    def test_missing_answer_drops_row(self):
        self.assertIsNone(normalize_row({"Category": "DevOps", "Question": "What is CD?", "Answer": ""}))

    def test_missing_category_drops_row(self):
        self.assertIsNone(normalize_row({"Category": "", "Question": "Q?", "Answer": "A."}))

    def test_capitalized_column_wins(self):
        record = normalize_row({"Category": "DevOps", "category": "Security", "Question": "Q?", "Answer": "A."})
        self.assertEqual(record.domain, "devops")

    def test_join_in_answer_repairs_to_database(self):
        record = normalize_row(
            {"Category": "-and LEFT.", "Question": "How are tables combined?", "Answer": "Use a JOIN clause."}
        )
        self.assertEqual(record.domain, "database")

    def test_storage_repairs_to_webdev(self):
        record = normalize_row(
            {"Category": "and sessionStorage.", "Question": "What is sessionStorage?", "Answer": "Per-tab data."}
        )
        self.assertEqual(record.domain, "webdev")


class TestLoadQuestions(unittest.TestCase):
    def test_reads_local_file(self):
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "questions.csv"
            path.write_text(SAMPLE_CSV, encoding="utf-8")
            records = load_questions(LocalQuestionSource(path))
        self.assertEqual(len(records), 5)

    def test_missing_file_fails_soft(self):
        with tempfile.TemporaryDirectory() as td:
            records = load_questions(LocalQuestionSource(Path(td) / "missing.csv"))
        self.assertEqual(records, [])

    def test_unreachable_source_fails_soft(self):
        self.assertEqual(load_questions(_BrokenSource()), [])

    def _load_from_raw_server(self, payload: bytes):
        server = _RawHttpServer(payload)
        try:
            with patch.dict(os.environ, {"no_proxy": "*", "NO_PROXY": "*"}):
                return load_questions(HttpQuestionSource(server.url, timeout_s=2.0))
        finally:
            server.close()

    def test_garbage_status_line_fails_soft(self):
        self.assertEqual(self._load_from_raw_server(b"NOT-HTTP garbage\r\n\r\n"), [])

    def test_truncated_body_fails_soft(self):
        payload = (
            b"HTTP/1.1 200 OK\r\nContent-Type: text/csv\r\nContent-Length: 500\r\n\r\n"
            b"Category,Question,Answer\n"
        )
        self.assertEqual(self._load_from_raw_server(payload), [])

    def test_http_source_reads_csv(self):
        body = b"Category,Question,Answer\nSecurity,What is XSS?,Script injection.\n"
        payload = b"HTTP/1.1 200 OK\r\nContent-Length: %d\r\n\r\n%s" % (len(body), body)
        records = self._load_from_raw_server(payload)
        self.assertEqual([r.domain for r in records], ["security"])

    def test_questions_for_domain_is_case_insensitive(self):
        records = parse_questions_csv(SAMPLE_CSV)
        self.assertEqual(len(questions_for_domain(records, "WEBDEV")), 2)
        self.assertEqual(questions_for_domain(records, "security"), [])


if __name__ == "__main__":
    unittest.main()
