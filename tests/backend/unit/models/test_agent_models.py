from __future__ import annotations

import pytest

from models.agent_models import AgentMessage, AgentRun, RunStatus, parse_message_list


class TestAgentRun:
    @pytest.mark.parametrize("status", ["queued", "in_progress", "requires_action", "cancelling", "brand_new"])
    def test_non_final_statuses_keep_polling(self, status: str) -> None:
        run = AgentRun(id="run_1", status=status)
        assert run.is_completed is False
        assert run.is_terminal_failure is False

    @pytest.mark.parametrize("status", [RunStatus.FAILED, RunStatus.CANCELLED, RunStatus.EXPIRED])
    def test_terminal_failures(self, status: RunStatus) -> None:
        assert AgentRun(id="run_1", status=status.value).is_terminal_failure is True

    def test_last_error(self) -> None:
        run = AgentRun.model_validate(
            {"id": "run_1", "status": "failed", "last_error": {"code": "server_error", "message": "overloaded"}}
        )
        assert run.last_error is not None
        assert run.last_error.message == "overloaded"


class TestAgentMessage:
    def test_text_fragments_skip_non_text(self) -> None:
        message = AgentMessage.model_validate(
            {
                "id": "msg_1",
                "role": "assistant",
                "content": [
                    {"type": "text", "text": {"value": "First", "annotations": []}},
                    {"type": "image_file", "image_file": {"file_id": "f1"}},
                    {"type": "text", "text": {"value": ""}},
                    {"type": "text", "text": {"value": "Second"}},
                ],
            }
        )

        assert message.text_fragments() == ["First", "Second"]

    def test_parse_message_list_missing_data(self) -> None:
        assert parse_message_list({"object": "list"}) == []

    def test_parse_message_list(self) -> None:
        messages = parse_message_list(
            {"data": [{"id": "msg_2", "role": "assistant", "created_at": 10, "content": []}]}
        )
        assert messages[0].created_at == 10
