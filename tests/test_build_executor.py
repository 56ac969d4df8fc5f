"""Tests for the build executor."""

import asyncio
import os
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from depbuild.build import executor as executor_module
from depbuild.build.checkpoint import CheckpointStore
from depbuild.build.executor import BuildExecutor, load_build_project, working_directory
from depbuild.build.policy import BuildPolicy, RestoreTools
from depbuild.build.probe import ExitCodeProbe
from depbuild.build.state import BuildState, ToolNotFoundError
from depbuild.graph.project import ProjectFile, ProjectKind


@pytest.fixture
def projects(make_project):
    """Five managed projects in build order."""
    return [
        make_project(f"P{i}/P{i}.csproj", assembly=f"P{i}", tfm="net8.0")
        for i in range(1, 6)
    ]


def fake_build(fail_in=(), calls=None):
    """Side effect for _run_command: records cwd, writes build.err where told to fail."""

    async def _run(command):
        cwd = Path(os.getcwd())
        if calls is not None:
            calls.append((command, cwd))
        if cwd.name in fail_in and command[0] != "nuget":
            (cwd / "build.err").write_text("error CS0103: The name 'x' does not exist\n")
            return 1, "Program.cs(10,5): error CS0103: The name 'x' does not exist [P.csproj]\n"
        return 0, "Build succeeded.\n"

    return _run


class TestWorkingDirectory:
    """Tests for the working_directory context manager."""

    def test_changes_and_restores(self, tmp_path):
        """Test the directory is changed inside the block and restored after."""
        before = os.getcwd()
        with working_directory(tmp_path) as cwd:
            assert Path(os.getcwd()) == tmp_path.resolve()
            assert cwd == tmp_path
        assert os.getcwd() == before

    def test_restores_on_error(self, tmp_path):
        """Test the directory is restored when the block raises."""
        before = os.getcwd()
        with pytest.raises(RuntimeError):
            with working_directory(tmp_path):
                raise RuntimeError("boom")
        assert os.getcwd() == before


class TestLoadBuildProject:
    """Tests for load_build_project."""

    def test_malformed_project_is_still_buildable(self, tmp_path):
        """Test unparseable documents get a kind from their extension."""
        managed = tmp_path / "Broken.csproj"
        managed.write_text("<Project>")
        native = tmp_path / "Broken.vcxproj"
        native.write_text("<Project>")

        assert load_build_project(managed).kind == ProjectKind.MODERN_SINGLE_TARGET
        assert load_build_project(native).kind == ProjectKind.NATIVE


class TestBuildExecutorRun:
    """Tests for BuildExecutor.run."""

    @pytest.mark.asyncio
    async def test_all_succeed_clears_checkpoint(self, tmp_path, projects):
        """Test a full success builds every project in order and clears the checkpoint."""
        store = CheckpointStore(tmp_path / "resume.txt")
        store.save(projects)
        executor = BuildExecutor(BuildPolicy.create("build", "-c"), checkpoint=store)
        calls = []

        with patch.object(executor, "_run_command", side_effect=fake_build(calls=calls)):
            result = await executor.run(projects)

        assert result.success
        assert result.state == BuildState.READY
        assert [r.project_path for r in result.results] == projects
        assert [cwd for _, cwd in calls] == [p.parent.resolve() for p in projects]
        assert all(command == ["build", "-c"] for command, _ in calls)
        assert not store.exists
        assert executor.state == BuildState.READY

    @pytest.mark.asyncio
    async def test_failure_on_third_of_five(self, tmp_path, projects):
        """Test the checkpoint holds exactly projects 3, 4, 5 after 3 fails."""
        store = CheckpointStore(tmp_path / "resume.txt")
        executor = BuildExecutor(BuildPolicy.create("build"), checkpoint=store)
        calls = []

        with patch.object(executor, "_run_command", side_effect=fake_build({"P3"}, calls)):
            result = await executor.run(projects)

        assert not result.success
        assert result.state == BuildState.FAILED
        assert result.failed_project == projects[2]
        assert result.remaining == projects[2:]
        assert store.load() == projects[2:]
        assert result.checkpoint_path == store.path
        # Nothing after the failed project is attempted
        assert [cwd for _, cwd in calls] == [p.parent.resolve() for p in projects[:3]]
        assert result.results[-1].errors[0].code == "CS0103"

    @pytest.mark.asyncio
    async def test_failure_restores_working_directory(self, tmp_path, projects):
        """Test the caller's directory is restored on the failure path."""
        before = os.getcwd()
        executor = BuildExecutor(
            BuildPolicy.create("build"), checkpoint=CheckpointStore(tmp_path / "resume.txt")
        )

        with patch.object(executor, "_run_command", side_effect=fake_build({"P1"})):
            await executor.run(projects)

        assert os.getcwd() == before

    @pytest.mark.asyncio
    async def test_exit_code_ignored_by_default_probe(self, tmp_path, projects):
        """Test a non-zero exit code without a marker file is a success."""
        executor = BuildExecutor(
            BuildPolicy.create("build"), checkpoint=CheckpointStore(tmp_path / "resume.txt")
        )

        with patch.object(executor, "_run_command", AsyncMock(return_value=(1, ""))):
            result = await executor.run(projects[:2])

        assert result.success

    @pytest.mark.asyncio
    async def test_exit_code_probe(self, tmp_path, projects):
        """Test the exit-code probe fails on a non-zero exit code."""
        store = CheckpointStore(tmp_path / "resume.txt")
        executor = BuildExecutor(BuildPolicy.create("build"), probe=ExitCodeProbe(), checkpoint=store)

        with patch.object(executor, "_run_command", AsyncMock(side_effect=[(0, ""), (2, "")])):
            result = await executor.run(projects[:3])

        assert not result.success
        assert store.load() == projects[1:3]

    @pytest.mark.asyncio
    async def test_restore_runs_before_build(self, tmp_path, projects, make_project):
        """Test nuget restore for managed projects and the alternate command for native ones."""
        native = make_project("N/N.vcxproj", properties={"TargetName": "N"})
        tools = RestoreTools(nuget="nuget", alternate=("altrestore", "/quiet"))
        executor = BuildExecutor(
            BuildPolicy.create("build"),
            checkpoint=CheckpointStore(tmp_path / "resume.txt"),
            restore_tools=tools,
        )
        calls = []

        with patch.object(executor, "_run_command", side_effect=fake_build(calls=calls)):
            result = await executor.run([native, projects[0]], restore=True)

        assert result.success
        commands = [command for command, _ in calls]
        assert commands == [
            ["altrestore", "/quiet", str(native)],
            ["build"],
            ["nuget", "restore", str(projects[0]), "-NonInteractive"],
            ["build"],
        ]

    @pytest.mark.asyncio
    async def test_restore_skipped_for_native_without_alternate(self, tmp_path, make_project):
        """Test native projects are not restored when no alternate command is set."""
        native = make_project("N/N.vcxproj")
        executor = BuildExecutor(
            BuildPolicy.create("build"),
            checkpoint=CheckpointStore(tmp_path / "resume.txt"),
            restore_tools=RestoreTools(nuget="nuget"),
        )
        calls = []

        with patch.object(executor, "_run_command", side_effect=fake_build(calls=calls)):
            await executor.run([native], restore=True)

        assert [command for command, _ in calls] == [["build"]]

    @pytest.mark.asyncio
    async def test_restore_without_tool_is_fatal(self, tmp_path, projects, monkeypatch):
        """Test restore fails before any build when nuget cannot be found."""
        monkeypatch.delenv("NUGET_PATH", raising=False)
        executor = BuildExecutor(
            BuildPolicy.create("build"), checkpoint=CheckpointStore(tmp_path / "resume.txt")
        )
        run_command = AsyncMock()

        with patch("shutil.which", return_value=None), patch.object(executor, "_run_command", run_command):
            with pytest.raises(ToolNotFoundError):
                await executor.run(projects, restore=True)

        run_command.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_build_command_saves_checkpoint(self, tmp_path, projects):
        """Test a missing build executable stops the run and keeps the remaining order."""
        store = CheckpointStore(tmp_path / "resume.txt")
        executor = BuildExecutor(BuildPolicy.create("definitely-not-a-real-build-tool"), checkpoint=store)

        with pytest.raises(ToolNotFoundError):
            await executor.run(projects)

        assert store.load() == projects
        assert executor.state == BuildState.FAILED

    @pytest.mark.asyncio
    async def test_state_listeners(self, tmp_path, projects):
        """Test listeners see BUILDING then READY; listener errors are ignored."""
        executor = BuildExecutor(
            BuildPolicy.create("build"), checkpoint=CheckpointStore(tmp_path / "resume.txt")
        )
        states = []
        executor.on_state_change(states.append)
        executor.on_state_change(MagicMock(side_effect=Exception("listener error")))

        with patch.object(executor, "_run_command", side_effect=fake_build()):
            await executor.run(projects[:1])

        assert states == [BuildState.BUILDING, BuildState.READY]

    @pytest.mark.asyncio
    async def test_empty_order(self, tmp_path):
        """Test an empty build order succeeds and clears the checkpoint."""
        store = CheckpointStore(tmp_path / "resume.txt")
        store.save([])
        executor = BuildExecutor(BuildPolicy.create("build"), checkpoint=store)

        result = await executor.run([])

        assert result.success
        assert not store.exists


class TestBuildExecutorSubprocess:
    """Tests running a real subprocess as the build command."""

    @pytest.mark.asyncio
    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX quoting")
    async def test_marker_written_by_build_command(self, tmp_path, projects):
        """Test the build command runs in the project directory and its marker is detected."""
        script = (
            "import os, pathlib; "
            "cwd = pathlib.Path(os.getcwd()); "
            "print('building', cwd.name); "
            "cwd.name == 'P2' and (cwd / 'buildfre.err').write_text('failed')"
        )
        policy = BuildPolicy.create(f"{sys.executable} -c \"{script}\"")
        store = CheckpointStore(tmp_path / "resume.txt")
        executor = BuildExecutor(policy, checkpoint=store)

        result = await executor.run(projects)

        assert not result.success
        assert [r.project_path for r in result.results] == projects[:2]
        assert "building P1" in result.results[0].output
        assert store.load() == projects[1:]


class TestBuildExecutorConcurrency:
    """Tests for overlapping runs in one process."""

    @pytest.mark.asyncio
    async def test_concurrent_runs_are_serialized(self, tmp_path, projects):
        """Test two overlapping runs build one after the other and restore the cwd."""
        before = os.getcwd()
        calls = []

        async def slow_build(command):
            calls.append(Path(os.getcwd()))
            await asyncio.sleep(0.05)
            calls.append(Path(os.getcwd()))
            return 0, ""

        first = BuildExecutor(BuildPolicy.create("build"), checkpoint=CheckpointStore(tmp_path / "first.txt"))
        second = BuildExecutor(BuildPolicy.create("build"), checkpoint=CheckpointStore(tmp_path / "second.txt"))

        with patch.object(first, "_run_command", side_effect=slow_build), patch.object(
            second, "_run_command", side_effect=slow_build
        ):
            results = await asyncio.gather(first.run(projects[:2]), second.run(projects[2:4]))

        assert all(result.success for result in results)
        assert os.getcwd() == before
        # Each build sees its own directory before and after awaiting
        expected = [p.parent.resolve() for p in projects[:4] for _ in range(2)]
        assert calls == expected


class TestBuildProject:
    """Tests for BuildExecutor.build_project."""

    @pytest.mark.asyncio
    async def test_restore_tools_located_on_demand(self, tmp_path, make_project):
        """Test restore tools are located when none were given."""
        project = ProjectFile.load(make_project("A/A.csproj", assembly="A", tfm="net8.0"))
        executor = BuildExecutor(
            BuildPolicy.create("build"), checkpoint=CheckpointStore(tmp_path / "resume.txt")
        )
        calls = []

        with patch.object(RestoreTools, "locate", return_value=RestoreTools(nuget="nuget")) as locate:
            with patch.object(executor, "_run_command", side_effect=fake_build(calls=calls)):
                result = await executor.build_project(project, restore=True)

        locate.assert_called_once()
        assert result.success
        assert [command[0] for command, _ in calls] == ["nuget", "build"]


class TestRunCommand:
    """Tests for BuildExecutor._run_command."""

    @pytest.mark.asyncio
    async def test_output_keeps_tail(self, tmp_path, monkeypatch):
        """Test output beyond the byte limit drops the oldest lines."""
        monkeypatch.setattr(executor_module, "MAX_OUTPUT_BYTES", 20)
        executor = BuildExecutor(
            BuildPolicy.create("build"), checkpoint=CheckpointStore(tmp_path / "resume.txt")
        )

        exit_code, output = await executor._run_command(
            [sys.executable, "-c", "for i in range(1000): print(i)"]
        )

        assert exit_code == 0
        assert len(output) <= 20
        assert output.splitlines()[-1] == "999"
