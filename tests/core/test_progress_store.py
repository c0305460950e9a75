"""Tests for ProgressStore."""
import json

from ralph_loop.core.progress_store import ProgressStore
from ralph_loop.models.task import Task


class TestProgressStore:
    """Test cases for ProgressStore."""

    def test_initialize_creates_activity_log(self, progress_store, state_dir):
        """Test initialize creates the directory and the activity log."""
        progress_store.initialize("run1")

        assert state_dir.exists()
        content = progress_store.activity_file.read_text()
        assert content.startswith("# Activity Log")
        assert "Run run1 started" in content

    def test_initialize_does_not_create_plan(self, progress_store):
        """Test initialize leaves planning to the agent."""
        progress_store.initialize("run1")
        assert not progress_store.plan_file.exists()
        assert progress_store.read_tasks() is None
        assert progress_store.plan_owner() == "run1"

    def test_initialize_is_idempotent(self, progress_store):
        """Test repeated initialize keeps earlier activity."""
        progress_store.initialize("run1")
        progress_store.append_activity("did something important")
        progress_store.initialize("run1")

        content = progress_store.activity_file.read_text()
        assert "did something important" in content
        assert content.count("# Activity Log") == 1
        assert content.count("Run run1 started") == 2

    def test_initialize_keeps_own_plan(self, progress_store, sample_tasks):
        """Test a resumed run keeps the plan it wrote."""
        progress_store.initialize("run1")
        progress_store.write_tasks(sample_tasks)

        progress_store.initialize("run1")

        assert len(progress_store.read_tasks()) == 2

    def test_initialize_moves_other_runs_plan_aside(self, progress_store, sample_tasks, state_dir):
        """Test a new run does not inherit another run's plan."""
        progress_store.initialize("run1")
        progress_store.write_tasks(sample_tasks)

        progress_store.initialize("run2")

        assert progress_store.read_tasks() is None
        assert progress_store.plan_owner() == "run2"
        archived = list(state_dir.glob("plan-run1-*.md"))
        assert len(archived) == 1
        assert "Add parser" in archived[0].read_text()
        assert f"moved to {archived[0].name}" in progress_store.activity_file.read_text()

    def test_initialize_moves_unowned_plan_aside(self, progress_store, sample_tasks, state_dir):
        """Test a plan with no recorded owner is not trusted by a new run."""
        progress_store.write_tasks(sample_tasks)

        progress_store.initialize("run1")

        assert progress_store.has_plan() is False
        assert len(list(state_dir.glob("plan-unowned-*.md"))) == 1

    def test_append_activity_never_rewrites(self, progress_store):
        """Test activity entries are appended in order."""
        progress_store.initialize("run1")
        progress_store.append_activity("first")
        before = progress_store.activity_file.read_text()
        progress_store.append_activity("second")
        after = progress_store.activity_file.read_text()

        assert after.startswith(before)
        assert after.index("first") < after.index("second")

    def test_write_and_read_tasks(self, progress_store, sample_tasks):
        """Test tasks written as fenced JSON read back with extra fields."""
        progress_store.write_tasks(sample_tasks)

        tasks = progress_store.read_tasks()
        assert [t.id for t in tasks] == [1, 2]
        assert tasks[1].model_dump()["test_type"] == "unit"
        assert "```json" in progress_store.plan_file.read_text()

    def test_read_tasks_accepts_bare_json(self, progress_store, state_dir):
        """Test a plan that is a bare JSON list."""
        state_dir.mkdir()
        progress_store.plan_file.write_text(json.dumps(
            [{"id": 1, "category": "c", "description": "d", "passes": True}]
        ))

        tasks = progress_store.read_tasks()
        assert len(tasks) == 1
        assert tasks[0].passes is True

    def test_read_tasks_accepts_tasks_object(self, progress_store, state_dir):
        """Test a plan holding a {"tasks": [...]} object."""
        state_dir.mkdir()
        progress_store.plan_file.write_text(
            "# Plan\n\n```json\n" + json.dumps({"tasks": [{"id": 7, "description": "d"}]}) + "\n```\n"
        )

        tasks = progress_store.read_tasks()
        assert tasks[0].id == 7
        assert tasks[0].passes is False

    def test_corrupt_plan_reads_as_missing(self, progress_store, state_dir):
        """Test unparseable JSON is treated as no plan."""
        state_dir.mkdir()
        progress_store.plan_file.write_text("```json\n[{not json\n```")

        assert progress_store.read_tasks() is None
        assert progress_store.has_plan() is False
        assert progress_store.all_tasks_complete() is False

    def test_undecodable_plan_reads_as_missing(self, progress_store, state_dir):
        """Test a plan with invalid UTF-8 bytes is treated as no plan."""
        state_dir.mkdir()
        progress_store.plan_file.write_bytes(b'```json\n[{"id":1,"description":"\xff\xfe"}]\n```')

        assert progress_store.read_tasks() is None
        assert progress_store.has_plan() is False
        assert progress_store.all_tasks_complete() is False

    def test_duplicate_ids_read_as_missing(self, progress_store, state_dir):
        """Test a plan reusing a task id is rejected."""
        state_dir.mkdir()
        progress_store.plan_file.write_text(json.dumps(
            [{"id": 1, "description": "a"}, {"id": 1, "description": "b"}]
        ))
        assert progress_store.read_tasks() is None

    def test_all_tasks_complete_false_without_plan(self, progress_store):
        """Test completion is false when no plan exists."""
        assert progress_store.all_tasks_complete() is False

    def test_all_tasks_complete_false_for_empty_plan(self, progress_store):
        """Test an empty plan is neither a plan nor complete."""
        progress_store.write_tasks([])
        assert progress_store.read_tasks() == []
        assert progress_store.has_plan() is False
        assert progress_store.all_tasks_complete() is False

    def test_all_tasks_complete(self, progress_store, sample_tasks):
        """Test completion requires every task to pass."""
        progress_store.write_tasks(sample_tasks)
        assert progress_store.all_tasks_complete() is False

        progress_store.write_tasks([t.model_copy(update={"passes": True}) for t in sample_tasks])
        assert progress_store.all_tasks_complete() is True

    def test_reconcile_restores_reverted_flags(self, progress_store, sample_tasks):
        """Test flags the agent reverted are set back to complete."""
        before = [sample_tasks[0].model_copy(update={"passes": True}), sample_tasks[1]]
        progress_store.write_tasks(before)
        # Agent rewrites the plan and flips task 1 back to incomplete
        progress_store.write_tasks(sample_tasks)

        restored = progress_store.reconcile(before)

        assert restored == [1]
        tasks = progress_store.read_tasks()
        assert tasks[0].passes is True
        assert tasks[1].passes is False

    def test_reconcile_without_changes_does_not_rewrite(self, progress_store, sample_tasks):
        """Test reconcile leaves an unchanged plan alone."""
        progress_store.write_tasks(sample_tasks)
        mtime = progress_store.plan_file.stat().st_mtime_ns

        assert progress_store.reconcile(sample_tasks) == []
        assert progress_store.plan_file.stat().st_mtime_ns == mtime

    def test_reconcile_without_previous_plan(self, progress_store, sample_tasks):
        """Test reconcile is a no-op when there was no plan before."""
        progress_store.write_tasks(sample_tasks)
        assert progress_store.reconcile(None) == []

    def test_write_tasks_leaves_no_temp_file(self, progress_store, sample_tasks, state_dir):
        """Test the atomic write cleans up its temp file."""
        progress_store.write_tasks(sample_tasks)
        assert [p.name for p in state_dir.iterdir()] == ["plan.md"]

    def test_separate_instances_share_state(self, state_dir, sample_tasks):
        """Test state lives on disk, not in the instance."""
        ProgressStore(state_dir).write_tasks(sample_tasks)
        assert len(ProgressStore(state_dir).read_tasks()) == 2

    def test_task_with_extra_fields_survives_reconcile(self, progress_store):
        """Test reconcile preserves agent-added fields."""
        before = [Task(id=1, description="d", passes=True, test_type="e2e")]
        progress_store.write_tasks(before)
        progress_store.write_tasks([Task(id=1, description="d", passes=False, test_type="e2e")])

        progress_store.reconcile(before)

        assert progress_store.read_tasks()[0].model_dump()["test_type"] == "e2e"
