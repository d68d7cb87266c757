# modules/analysis/prompts.py
"""
Prompt de synthèse envoyé au LLM.

Les règles d'anonymat et de format HTML sont fixes ; seules les réponses
numérotées varient d'un pulse à l'autre.
"""
from typing import Iterable

DEFAULT_QUESTION = "How have you been feeling lately?"

ANONYMITY_RULES = """\
EXTREMELY IMPORTANT: Maintain strict anonymity in your analysis:
- NEVER reference when someone joined the team, their tenure, or time-based identifiers
- NEVER include information that could identify specific individuals or roles
- NEVER mention unique situations that could be traced back to specific individuals
- NEVER reference gender, race, age, seniority, team assignments, or any demographic information
- NEVER include direct quotes that could identify someone
- Focus ONLY on themes, patterns, and general sentiments across responses
- Present all findings as general observations about the group as a whole"""

FORMAT_RULES = """\
Important formatting requirements:
- Format your response using HTML with appropriate elements (h1, h2, h3, p, ul, li, etc.)
- For any warning sections or critical issues, wrap them in <div class="warning">...</div>
- Use heading elements (h2, h3) for section titles
- Use paragraph <p> elements for normal text
- Use lists (<ul>, <li>) for bullet points
- Return only the HTML fragment, without <html> or <body> wrappers"""


def build_prompt(responses: Iterable[str], question: str = DEFAULT_QUESTION) -> str:
    numbered = "\n".join(f'{i}. "{text}"' for i, text in enumerate(responses, start=1))
    return (
        f'You are analyzing anonymous responses from a team survey asking "{question}".\n\n'
        f"Here are the responses:\n{numbered}\n\n"
        "Please provide a thoughtful analysis that includes:\n"
        "1. A general summary of the overall sentiment and themes in the responses.\n"
        "2. Key action items that might help address any concerns or issues mentioned.\n"
        "3. Any significant problem areas that need immediate attention.\n\n"
        f"{ANONYMITY_RULES}\n\n"
        f"{FORMAT_RULES}\n"
    )
