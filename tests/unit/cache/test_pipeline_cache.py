"""
Unit tests for the staged pipeline cache.
"""

import json
from typing import List

import pytest

from chat_activities.cache.keys import hash_content
from chat_activities.cache.pipeline_cache import PipelineCache
from chat_activities.models.messages import Message


CHAT = "[1/5/25, 3:04 PM] Alice: We should hike Roys Peak\n"


@pytest.mark.unit
class TestRuns:
    """Tests for run identification and discovery."""

    def test_run_id_from_source_and_hash(self, tmp_path):
        cache = PipelineCache(tmp_path)

        run = cache.get_or_create_run("WhatsApp Chat.txt", CHAT)

        assert run.run_id == f"WhatsApp_Chat-{hash_content(CHAT)[:8]}"
        assert run.input_hash == hash_content(CHAT)
        assert (tmp_path / "runs" / run.run_id / "run.json").exists()

    def test_same_content_reuses_run(self, tmp_path):
        first = PipelineCache(tmp_path).get_or_create_run("chat.txt", CHAT)
        second = PipelineCache(tmp_path).get_or_create_run("renamed.txt", CHAT)

        assert second.run_id == first.run_id
        assert len(PipelineCache(tmp_path).list_runs()) == 1

    def test_distinct_content_creates_distinct_run(self, tmp_path):
        cache = PipelineCache(tmp_path)
        first = cache.get_or_create_run("chat.txt", CHAT)
        second = cache.get_or_create_run("chat.txt", CHAT + "more\n")

        assert first.run_id != second.run_id
        assert {r.run_id for r in cache.list_runs()} == {first.run_id, second.run_id}

    def test_file_identity_run(self, tmp_path):
        export = tmp_path / "export.txt"
        export.write_text(CHAT, encoding="utf-8")
        cache = PipelineCache(tmp_path / "cache")

        run = cache.init_run_from_file(export)

        assert run.source_name == "export.txt"
        assert run.run_id.startswith("export-")

    def test_list_runs_empty_directory(self, tmp_path):
        assert PipelineCache(tmp_path / "missing").list_runs() == []


@pytest.mark.unit
class TestStages:
    """Tests for stage reads and writes."""

    def test_stage_access_requires_run(self, tmp_path):
        cache = PipelineCache(tmp_path)

        with pytest.raises(RuntimeError):
            cache.has_stage("messages")
        assert cache.list_stages() == []

    @pytest.mark.parametrize("name", ["../escape", "", "a/b", ".hidden"])
    def test_invalid_stage_name_rejected(self, tmp_path, name):
        cache = PipelineCache(tmp_path)
        cache.get_or_create_run("chat.txt", CHAT)

        with pytest.raises(ValueError, match="Invalid stage name"):
            cache.set_stage(name, [])

    def test_absent_stage_reads_none(self, tmp_path):
        cache = PipelineCache(tmp_path)
        cache.get_or_create_run("chat.txt", CHAT)

        assert cache.has_stage("messages") is False
        assert cache.get_stage("messages") is None

    def test_typed_round_trip(self, tmp_path, fixed_timestamp):
        cache = PipelineCache(tmp_path)
        cache.get_or_create_run("chat.txt", CHAT)
        messages = [Message(id=1, sender="Alice", timestamp=fixed_timestamp, content="hi", urls=["https://a.b"])]

        cache.set_stage("messages", messages)

        assert cache.get_stage("messages", List[Message]) == messages
        raw = cache.get_stage("messages")
        assert raw[0]["urls"] == ["https://a.b"]

    def test_payload_written_with_camel_case_aliases(self, tmp_path, fixed_timestamp):
        cache = PipelineCache(tmp_path)
        run = cache.get_or_create_run("chat.txt", CHAT)
        cache.set_stage("stats", {"candidatesClassified": 3})
        cache.set_stage(
            "sources",
            [Message(id=1, sender="Alice", timestamp=fixed_timestamp, content="hi")],
        )

        stage_file = tmp_path / "runs" / run.run_id / "stages" / "stats.json"
        assert json.loads(stage_file.read_text(encoding="utf-8")) == {"candidatesClassified": 3}
        assert cache.list_stages() == ["sources", "stats"]

    def test_stages_persist_across_instances(self, tmp_path):
        writer = PipelineCache(tmp_path)
        writer.get_or_create_run("chat.txt", CHAT)
        writer.set_stage("candidates.all", [{"messageId": 1}])

        reader = PipelineCache(tmp_path)
        reader.get_or_create_run("chat.txt", CHAT)

        assert reader.get_stage("candidates.all") == [{"messageId": 1}]

    def test_skip_cache_hides_previous_stages(self, tmp_path):
        writer = PipelineCache(tmp_path)
        writer.get_or_create_run("chat.txt", CHAT)
        writer.set_stage("messages", ["old"])
        writer.set_stage("heuristics", ["kept"])

        fresh = PipelineCache(tmp_path, skip_cache=True)
        fresh.get_or_create_run("chat.txt", CHAT)

        assert fresh.get_stage("messages") is None
        fresh.set_stage("messages", ["new"])
        assert fresh.get_stage("messages") == ["new"]
        assert fresh.has_stage("heuristics") is False
        # Stages that were not recomputed stay on disk
        assert "heuristics" in fresh.list_stages()
