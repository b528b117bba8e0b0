from typing import Sequence

from codechat.models import FileContent

INSTRUCTIONS = """**Instructions:**
- Analyze the provided code files carefully
- Provide detailed, accurate answers with examples
- Use proper markdown formatting
- Include code snippets with syntax highlighting using ```language syntax
- Explain step-by-step when needed
- If suggesting changes, show before/after code
- Be concise but thorough
- Focus on best practices and code quality"""


def build_context_prompt(user_message: str, files: Sequence[FileContent]) -> str:
    """
    Render the files and the question into one prompt.

    Conversation history is not inlined here; it goes to the model as
    separate role-tagged turns. No size budget is enforced.
    """
    parts = []

    if files:
        parts.append("**Uploaded Codebase Files:**\n\n")
        for index, file in enumerate(files, start=1):
            parts.append(f"**File {index}: {file.filename}**\n```\n{file.content}\n```\n\n")
        parts.append("---\n\n")

    parts.append(f"**User Question:**\n{user_message}\n\n")
    parts.append(INSTRUCTIONS)
    return "".join(parts)
