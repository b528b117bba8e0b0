import os
import sys
import unittest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from codechat.models import FileContent
from codechat.prompt_builder import INSTRUCTIONS, build_context_prompt


class TestPromptBuilder(unittest.TestCase):
    def test_no_files_contains_only_question_and_instructions(self):
        prompt = build_context_prompt("What does foo() do?", [])

        self.assertEqual(prompt, "**User Question:**\nWhat does foo() do?\n\n" + INSTRUCTIONS)
        self.assertNotIn("Uploaded Codebase Files", prompt)

    def test_files_listed_in_order_with_fenced_content(self):
        files = [
            FileContent(filename="b.py", content="print('b')", path="/u/b.py"),
            FileContent(filename="a.py", content="print('a')", path="/u/a.py"),
        ]

        prompt = build_context_prompt("Explain", files)

        self.assertTrue(prompt.startswith("**Uploaded Codebase Files:**"))
        self.assertIn("**File 1: b.py**\n```\nprint('b')\n```", prompt)
        self.assertIn("**File 2: a.py**\n```\nprint('a')\n```", prompt)
        self.assertLess(prompt.index("b.py"), prompt.index("a.py"))
        self.assertLess(prompt.index("a.py"), prompt.index("**User Question:**\nExplain"))
        self.assertTrue(prompt.endswith(INSTRUCTIONS))

    def test_instructions_ask_for_fenced_code(self):
        self.assertIn("```language", INSTRUCTIONS)


if __name__ == "__main__":
    unittest.main()
