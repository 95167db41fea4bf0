"""
Unit tests for agent text extraction.

Tests verify deliverable, collaboration and user-prompt parsing, including
the single-match policy and the no-match cases.
"""

from agentoffice.core.domain.extraction import (
    detect_language,
    extract_collaboration,
    extract_deliverable,
    extract_user_prompt,
)
from agentoffice.core.domain.models import CollaborationType, DeliverableType


class TestExtractDeliverable:
    """Deliverable blocks."""

    def test_simple_block(self):
        deliverable = extract_deliverable("[DELIVERABLE:code:Foo]bar[/DELIVERABLE]", "leo", "m-1")

        assert deliverable is not None
        assert deliverable.type is DeliverableType.CODE
        assert deliverable.title == "Foo"
        assert deliverable.content == "bar"
        assert deliverable.agent_id == "leo"
        assert deliverable.mission_id == "m-1"

    def test_unknown_type_is_rejected(self):
        assert extract_deliverable("[DELIVERABLE:poem:Ode]roses[/DELIVERABLE]", "leo", "m-1") is None

    def test_title_and_content_are_trimmed(self):
        message = "Here you go:\n[DELIVERABLE:plan:  Roadmap ]\n  # Phase 1\n[/DELIVERABLE]"
        deliverable = extract_deliverable(message, "momo", "m-1")

        assert deliverable.title == "Roadmap"
        assert deliverable.content == "# Phase 1"
        assert deliverable.metadata == {}

    def test_only_first_block_is_extracted(self):
        message = (
            "[DELIVERABLE:document:First]one[/DELIVERABLE]"
            "[DELIVERABLE:document:Second]two[/DELIVERABLE]"
        )
        assert extract_deliverable(message, "alex", "m-1").title == "First"

    def test_code_gets_language(self):
        message = "[DELIVERABLE:code:app.py]def main():\n    print('hi')[/DELIVERABLE]"
        assert extract_deliverable(message, "leo", "m-1").metadata == {"language": "python"}

    def test_no_block(self):
        assert extract_deliverable("just talking", "leo", "m-1") is None
        assert extract_deliverable("", "leo", "m-1") is None

    def test_unterminated_block(self):
        assert extract_deliverable("[DELIVERABLE:code:Foo]bar", "leo", "m-1") is None

    def test_ids_are_unique(self):
        message = "[DELIVERABLE:code:Foo]bar[/DELIVERABLE]"
        first = extract_deliverable(message, "leo", "m-1")
        second = extract_deliverable(message, "leo", "m-1")
        assert first.id != second.id


class TestDetectLanguage:
    """Keyword-based language sniffing."""

    def test_typescript(self):
        assert detect_language("interface Props { name: string }") == "typescript"

    def test_python(self):
        assert detect_language("def handler(event):\n    return event") == "python"

    def test_javascript(self):
        assert detect_language("const x = () => 1;") == "javascript"

    def test_unknown(self):
        assert detect_language("SELECT * FROM users") == "text"


class TestExtractCollaboration:
    """Agent mentions and their classification."""

    def test_question(self):
        collaboration = extract_collaboration("@MOMO, what do you think?", "leo")

        assert collaboration.from_agent_id == "leo"
        assert collaboration.to_agent_id == "momo"
        assert collaboration.collaboration_type is CollaborationType.QUESTION

    def test_approval(self):
        collaboration = extract_collaboration("ALEX, I approve your plan", "momo")

        assert collaboration.to_agent_id == "alex"
        assert collaboration.collaboration_type is CollaborationType.APPROVAL

    def test_proposal(self):
        collaboration = extract_collaboration("Hey LEO I suggest we split the module", "alex")
        assert collaboration.collaboration_type is CollaborationType.PROPOSAL

    def test_handoff(self):
        collaboration = extract_collaboration("ALEX - your turn to review", "leo")
        assert collaboration.collaboration_type is CollaborationType.HANDOFF

    def test_answer_by_default(self):
        collaboration = extract_collaboration("MOMO: the API is ready", "leo")
        assert collaboration.collaboration_type is CollaborationType.ANSWER

    def test_question_wins_over_approval(self):
        collaboration = extract_collaboration("@ALEX do you agree?", "leo")
        assert collaboration.collaboration_type is CollaborationType.QUESTION

    def test_self_mention_ignored(self):
        assert extract_collaboration("LEO: note to self", "leo") is None

    def test_first_agent_in_roster_order_wins(self):
        collaboration = extract_collaboration("@ALEX and @MOMO, please sync", "leo")
        assert collaboration.to_agent_id == "momo"

    def test_plain_name_is_not_a_mention(self):
        assert extract_collaboration("I talked with MOMO yesterday", "leo") is None

    def test_message_is_trimmed(self):
        collaboration = extract_collaboration("  @LEO: done  ", "alex")
        assert collaboration.message == "@LEO: done"

    def test_empty_message(self):
        assert extract_collaboration("", "leo") is None

    def test_lowercase_mention(self):
        collaboration = extract_collaboration("@momo, ok?", "leo")

        assert collaboration.to_agent_id == "momo"
        assert collaboration.collaboration_type is CollaborationType.QUESTION

    def test_keywords_ignore_case(self):
        collaboration = extract_collaboration("ALEX, I Approve", "momo")
        assert collaboration.collaboration_type is CollaborationType.APPROVAL

    def test_mixed_case_handoff(self):
        collaboration = extract_collaboration("hey Leo Your Turn", "alex")

        assert collaboration.to_agent_id == "leo"
        assert collaboration.collaboration_type is CollaborationType.HANDOFF


class TestExtractUserPrompt:
    """User input requests."""

    def test_prompt(self):
        request = extract_user_prompt(
            "Before I start: [USER_PROMPT] Which database? [/USER_PROMPT]", "leo"
        )

        assert request.agent_id == "leo"
        assert request.question == "Which database?"
        assert request.requires_response is True
        assert request.to_payload() == {
            "agentId": "leo",
            "question": "Which database?",
            "requiresResponse": True,
        }

    def test_no_prompt(self):
        assert extract_user_prompt("All clear", "leo") is None
