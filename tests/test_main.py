import json
import os
import tempfile
import unittest
from unittest.mock import patch

from resumaker.core.config import Settings
from resumaker.main import main


RESUME = {
    "personal_details": {
        "name": "Jane Doe",
        "email": "jane@example.com",
        "phone": "555-0100",
        "address": "1 Main St",
    },
    "professional_details": {
        "experience": [{"company": "Acme", "role": "Engineer", "duration": "2020-2024",
                        "responsibilities": ["Built things"]}],
        "skills": ["Python"],
    },
    "objective": "Engineer who ships.",
}


class TestCli(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)

    def _write(self, name, content):
        path = os.path.join(self.tmp.name, name)
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)
        return path

    def test_export_writes_pdf(self):
        resume_path = self._write("resume.json", json.dumps(RESUME))
        output_dir = os.path.join(self.tmp.name, "out")

        code = main(["export", "--resume", resume_path, "--output-dir", output_dir])

        self.assertEqual(code, 0)
        with open(os.path.join(output_dir, "Jane_Doe_Resume.pdf"), "rb") as f:
            self.assertTrue(f.read().startswith(b"%PDF"))

    def test_invalid_resume_fails(self):
        resume = dict(RESUME, personal_details={"name": "Jane Doe"})
        resume_path = self._write("resume.json", json.dumps(resume))

        code = main(["export", "--resume", resume_path, "--output-dir", self.tmp.name])

        self.assertEqual(code, 1)
        self.assertEqual([f for f in os.listdir(self.tmp.name) if f.endswith(".pdf")], [])

    def test_missing_file_fails(self):
        self.assertEqual(main(["export", "--resume", os.path.join(self.tmp.name, "nope.json")]), 1)

    def test_ai_flags_need_an_api_key(self):
        resume_path = self._write("resume.json", json.dumps(RESUME))
        with patch("resumaker.main.load_settings", return_value=Settings()):
            code = main(["export", "--resume", resume_path, "--generate-objective",
                         "--output-dir", self.tmp.name])
        self.assertEqual(code, 1)


if __name__ == '__main__':
    unittest.main()
