import os
import signal
import subprocess
import sys
from pathlib import Path

import pytest

from filtersync.errors import LaunchFailed
from filtersync.launcher import launch

SRC_DIR = Path(__file__).resolve().parents[1] / "src"


def test_spawned_command_exit_code_is_forwarded() -> None:
    code = launch([sys.executable, "-c", "raise SystemExit(7)"], replace_process=False)

    assert code == 7


def test_arguments_are_passed_unmodified(tmp_path: Path) -> None:
    output = tmp_path / "argv.txt"
    script = "import sys; open(sys.argv[1], 'w').write('|'.join(sys.argv[2:]))"

    launch(
        [sys.executable, "-c", script, str(output), "--", "-flag", "two words"],
        replace_process=False,
    )

    assert output.read_text() == "--|-flag|two words"


def test_missing_command_is_launch_failed() -> None:
    with pytest.raises(LaunchFailed) as excinfo:
        launch(["/nonexistent/filtersync-test-binary"], replace_process=False)

    assert excinfo.value.code == "E_LAUNCH"


def test_empty_command_is_launch_failed() -> None:
    with pytest.raises(LaunchFailed):
        launch([])


@pytest.mark.skipif(os.name != "posix", reason="signals map to exit codes on POSIX only")
def test_signal_death_maps_to_shell_convention() -> None:
    script = "import os, signal; os.kill(os.getpid(), signal.SIGTERM)"

    code = launch([sys.executable, "-c", script], replace_process=False)

    assert code == 128 + signal.SIGTERM


@pytest.mark.skipif(os.name != "posix", reason="exec replacement is POSIX only")
def test_exec_replaces_process_and_keeps_exit_code() -> None:
    program = (
        "import sys\n"
        "from filtersync.launcher import launch\n"
        "launch([sys.executable, '-c', 'raise SystemExit(5)'], replace_process=True)\n"
        "raise SystemExit(99)\n"
    )
    env = {**os.environ, "PYTHONPATH": str(SRC_DIR)}

    completed = subprocess.run([sys.executable, "-c", program], env=env, check=False)

    assert completed.returncode == 5
