"""Tests for the Dispatcher: routing groups, board updates, reports, templates."""

import asyncio
import json

import pytest

from enkai.config import Config
from enkai.dispatch.board import TaskBoard
from enkai.dispatch.competition import DEFAULT_VARIANTS, Variant
from enkai.dispatch.dispatcher import (
    Dispatcher,
    list_templates,
    load_tasks,
    load_template,
    parse_tasks,
    resolve_tasks,
)
from enkai.dispatch.rendering import DispatchRenderer
from enkai.dispatch.routing import ModelRouter
from enkai.dispatch.tasks import Priority, TaskDescriptor, TaskStatus
from enkai.dispatch.writer import MemoryWriter
from enkai.errors import ProviderError


def _task(id, instructions="Create a header", model=None):
    return TaskDescriptor(
        id=id, name=f"{id}.tsx", instructions=instructions,
        destination=f"src/{id}.tsx", model=model,
    )


class FakeModels:
    """Generation capabilities keyed by preset, recording every call."""

    def __init__(self, failing=()):
        self.failing = set(failing)
        self.calls = []

    def generator_for(self, preset):
        async def generate(prompt):
            self.calls.append((preset, prompt))
            await asyncio.sleep(0)
            if preset in self.failing or "FAIL" in prompt:
                raise ProviderError("model unavailable", model=preset)
            return f"```tsx\n// {preset}\n```"
        return generate


def _dispatcher(models, writer, **kwargs):
    kwargs.setdefault("router", ModelRouter("flash", {"complex": "thinking"}))
    kwargs.setdefault("concurrency_for", lambda preset: 2)
    return Dispatcher(generator_for=models.generator_for, write=writer, **kwargs)


class TestDispatcherRun:
    """End-to-end batches with fake models."""

    def test_all_tasks_written(self):
        models, writer = FakeModels(), MemoryWriter()
        batch = asyncio.run(_dispatcher(models, writer).run([_task("a"), _task("b")]))
        assert len(batch.results) == 2
        assert batch.summary.success_count == 2
        assert writer.files == {"src/a.tsx": "// flash", "src/b.tsx": "// flash"}
        assert batch.report_path is None

    def test_tasks_routed_by_complexity(self):
        models, writer = FakeModels(), MemoryWriter()
        tasks = [_task("a"), _task("b", "Design the state machine"), _task("c", model="pro")]
        batch = asyncio.run(_dispatcher(models, writer).run(tasks))
        assert writer.files["src/b.tsx"] == "// thinking"
        assert writer.files["src/c.tsx"] == "// pro"
        assert {r.task_id: r.model for r in batch.results} == {"a": "flash", "b": "thinking", "c": "pro"}

    def test_group_concurrency_from_preset(self):
        limits = []

        def concurrency_for(preset):
            limits.append(preset)
            return 1

        models = FakeModels()
        tasks = [_task("a"), _task("b", "complex algorithm")]
        asyncio.run(_dispatcher(models, MemoryWriter(), concurrency_for=concurrency_for).run(tasks))
        assert limits == ["flash", "thinking"]

    def test_failures_do_not_stop_batch(self):
        models, writer = FakeModels(), MemoryWriter()
        tasks = [_task("a"), _task("b", "FAIL here"), _task("c")]
        batch = asyncio.run(_dispatcher(models, writer).run(tasks))
        assert batch.summary.total_tasks == 3
        assert batch.summary.failure_count == 1
        assert "src/b.tsx" not in writer.files
        assert "model unavailable" in batch.summary.failures()[0].error

    def test_preamble_prefixed(self):
        models = FakeModels()
        asyncio.run(_dispatcher(models, MemoryWriter(), preamble="RULES").run([_task("a")]))
        assert models.calls == [("flash", "RULES\n\nCreate a header")]

    def test_empty_batch(self):
        batch = asyncio.run(_dispatcher(FakeModels(), MemoryWriter()).run([]))
        assert batch.results == []
        assert batch.summary is None

    def test_board_lifecycle(self):
        board = TaskBoard()
        models = FakeModels()
        tasks = [_task("a"), _task("b", "FAIL")]
        asyncio.run(_dispatcher(models, MemoryWriter(), board=board).run(tasks))
        assert board.get_task("a").status == TaskStatus.COMPLETED
        assert board.get_task("a").assigned_to == "flash"
        assert board.get_task("b").status == TaskStatus.ASSIGNED

    def test_report_written(self, tmp_path):
        batch = asyncio.run(
            _dispatcher(FakeModels(), MemoryWriter(), report_dir=str(tmp_path)).run([_task("a")])
        )
        assert batch.report_path.parent == tmp_path
        assert json.loads(batch.report_path.read_text(encoding="utf-8"))["totalTasks"] == 1

    def test_renderer_receives_events(self, mock_console):
        renderer = DispatchRenderer(mock_console)
        asyncio.run(
            _dispatcher(FakeModels(), MemoryWriter(), renderer=renderer).run([_task("a"), _task("b", "FAIL")])
        )
        # batch start + 2 starts + 2 settles + summary panel
        assert mock_console.print.call_count == 6

    def test_unwritable_report_dir_keeps_results(self, tmp_path, mock_console):
        blocker = tmp_path / "reports"
        blocker.write_text("not a directory", encoding="utf-8")
        dispatcher = _dispatcher(
            FakeModels(), MemoryWriter(), report_dir=str(blocker), renderer=DispatchRenderer(mock_console),
        )
        batch = asyncio.run(dispatcher.run([_task("a")]))
        assert batch.summary.success_count == 1
        assert batch.report_path is None
        # batch start + start + settle + summary panel
        assert mock_console.print.call_count == 4

    def test_groups_run_one_after_another(self):
        counters = {"in_flight": 0, "peak": 0}

        def generator_for(preset):
            async def generate(prompt):
                counters["in_flight"] += 1
                counters["peak"] = max(counters["peak"], counters["in_flight"])
                await asyncio.sleep(0.01)
                counters["in_flight"] -= 1
                return "```tsx\nok\n```"
            return generate

        limits = {"flash": 2, "thinking": 3}
        tasks = [_task(f"s{i}") for i in range(4)] + [_task(f"c{i}", "complex algorithm") for i in range(4)]
        dispatcher = Dispatcher(
            generator_for=generator_for,
            write=MemoryWriter(),
            router=ModelRouter("flash", {"complex": "thinking"}),
            concurrency_for=limits.__getitem__,
        )
        batch = asyncio.run(dispatcher.run(tasks))
        assert batch.summary.success_count == 8
        assert counters["peak"] == 3

    def test_renderer_error_keeps_task_result(self):
        class BrokenRenderer:
            def render_batch_start(self, *args):
                pass

            def render_task_start(self, task):
                raise RuntimeError("terminal gone")

            def render_task_settled(self, task, result):
                raise RuntimeError("terminal gone")

            def render_summary(self, *args):
                pass

        board = TaskBoard()
        writer = MemoryWriter()
        batch = asyncio.run(
            _dispatcher(FakeModels(), writer, renderer=BrokenRenderer(), board=board).run([_task("a")])
        )
        assert [(r.task_id, r.success) for r in batch.results] == [("a", True)]
        assert writer.files == {"src/a.tsx": "// flash"}
        assert board.get_task("a").status == TaskStatus.COMPLETED


class TestFromConfig:
    """Wiring from a loaded Config."""

    def test_explicit_model_disables_routing(self, config_yaml_file, tmp_dir):
        config = Config.load(str(tmp_dir))
        dispatcher = Dispatcher.from_config(config, write=MemoryWriter(), model="local")
        assert dispatcher.router.routes == {}
        assert dispatcher.router.default == "local"

    def test_routing_and_concurrency(self, config_yaml_file, tmp_dir):
        config = Config.load(str(tmp_dir))
        dispatcher = Dispatcher.from_config(config, write=MemoryWriter())
        assert dispatcher.router.select(_task("a", "complex algorithm")) == "big"
        assert dispatcher.concurrency_for("big") == 1
        assert dispatcher.concurrency_for("local") == 3
        assert dispatcher.report_dir is None

    def test_concurrency_override(self, config_yaml_file, tmp_dir):
        config = Config.load(str(tmp_dir))
        dispatcher = Dispatcher.from_config(config, write=MemoryWriter(), concurrency=8)
        assert dispatcher.concurrency_for("big") == 8

    def test_preamble_switch(self, tmp_dir):
        config = Config.load(str(tmp_dir))
        assert Dispatcher.from_config(config, write=MemoryWriter()).preamble == config.preamble
        assert Dispatcher.from_config(config, write=MemoryWriter(), use_preamble=False).preamble is None

    def test_adapters_cached_per_preset(self, config_yaml_file, tmp_dir):
        config = Config.load(str(tmp_dir))
        dispatcher = Dispatcher.from_config(config, write=MemoryWriter())
        first = dispatcher.generator_for("local")
        assert dispatcher.generator_for("local") is first
        assert first.model == "openai/model"
        assert first.api_base == "http://localhost:8080/v1"

    def test_competition_off_by_default(self, config_yaml_file, tmp_dir):
        dispatcher = Dispatcher.from_config(Config.load(str(tmp_dir)), write=MemoryWriter())
        assert dispatcher.variants is None

    def test_compete_uses_default_variants(self, config_yaml_file, tmp_dir):
        config = Config.load(str(tmp_dir))
        dispatcher = Dispatcher.from_config(config, write=MemoryWriter(), compete=True)
        assert dispatcher.variants == list(DEFAULT_VARIANTS)
        config.compete = True
        assert Dispatcher.from_config(config, write=MemoryWriter()).variants == list(DEFAULT_VARIANTS)

    def test_variant_adapters_carry_temperature(self, config_yaml_file, tmp_dir):
        config = Config.load(str(tmp_dir))
        variant = Variant("local@0.9", "local", 0.9)
        dispatcher = Dispatcher.from_config(config, write=MemoryWriter(), variants=[variant])
        adapter = dispatcher.variant_generator_for(variant)
        assert adapter.temperature == 0.9
        assert adapter.model == "openai/model"
        assert dispatcher.generator_for("local").temperature == 0.0


class TestTaskTemplates:
    """JSON task lists."""

    def test_parse_list(self):
        tasks = parse_tasks(json.dumps([
            {"fileName": "Header.tsx", "prompt": "Create a header", "outputPath": "src/Header.tsx"},
            {"name": "Footer.tsx", "instructions": "Fix footer links", "model": "pro", "complexity": "simple"},
        ]), batch_id="b1")
        assert [t.id for t in tasks] == ["b1-1", "b1-2"]
        assert tasks[0].destination == "src/Header.tsx"
        assert tasks[0].priority == Priority.HIGH
        assert tasks[1].destination == "./Footer.tsx"
        assert tasks[1].model == "pro"
        assert tasks[1].complexity == "simple"
        assert tasks[1].priority == Priority.MEDIUM

    def test_parse_wrapped(self):
        tasks = parse_tasks('{"tasks": [{"name": "a.ts", "description": "Add a"}]}')
        assert tasks[0].instructions == "Add a"

    @pytest.mark.parametrize("text", [
        "not json",
        '{"name": "a.ts"}',
        '["just a string"]',
        '[{"name": "a.ts"}]',
        '[{"prompt": "no name"}]',
    ])
    def test_parse_invalid(self, text):
        with pytest.raises(ValueError):
            parse_tasks(text)

    def test_load_tasks(self, tmp_path):
        path = tmp_path / "tasks.json"
        path.write_text(json.dumps([{"name": "a.ts", "prompt": "Create a"}]), encoding="utf-8")
        assert load_tasks(path)[0].name == "a.ts"

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(ValueError):
            load_tasks(tmp_path / "missing.json")


class TestPackagedTemplates:
    """Task templates shipped with the package."""

    def test_list(self):
        assert list_templates() == ["game-components", "web-app"]

    @pytest.mark.parametrize("name", ["game-components", "web-app"])
    def test_every_template_parses(self, name):
        tasks = load_template(name)
        assert len(tasks) == 5
        assert all(t.destination.startswith("./components/") for t in tasks)
        assert len({t.id for t in tasks}) == 5

    def test_unknown_template(self):
        with pytest.raises(ValueError, match="Available templates: game-components, web-app"):
            load_template("space-opera")

    def test_resolve_prefers_existing_file(self, tmp_dir):
        (tmp_dir / "web-app").write_text(json.dumps([{"name": "x.ts", "prompt": "Create x"}]), encoding="utf-8")
        assert [t.name for t in resolve_tasks("web-app")] == ["x.ts"]

    def test_resolve_template_name(self, tmp_dir):
        assert resolve_tasks("web-app")[0].name == "Header.tsx"

    def test_resolve_missing_json_path(self, tmp_dir):
        with pytest.raises(ValueError, match="Cannot read task template"):
            resolve_tasks("nothing-here.json")
