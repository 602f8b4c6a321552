"""Import helpers for scripts that aren't packages."""
import importlib.util
import subprocess
import sys
from pathlib import Path

ROOT = Path(__file__).parent.parent
SCRIPTS_DIR = ROOT / "scripts"

# pkg/ for the libraries, scripts/ so the scripts can import lib.progress.
for path in (ROOT, SCRIPTS_DIR):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))


def _import_script(name: str, filename: str):
    """Import a script file as a module using importlib."""
    spec = importlib.util.spec_from_file_location(name, SCRIPTS_DIR / filename)
    mod = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(mod)
    return mod


await_ready_script = _import_script("await_ready_script", "await-ready.py")
start_stack = _import_script("start_stack", "start-stack.py")
monitor_stack = _import_script("monitor_stack", "monitor-stack.py")


class FakeDocker:
    """Records docker invocations and answers them from a routing function."""

    def __init__(self, route=None):
        self.calls: list[list[str]] = []
        self._route = route or (lambda _args: (0, "", ""))

    def __call__(self, args, **kwargs):
        self.calls.append(list(args))
        returncode, stdout, stderr = self._route(list(args))
        return subprocess.CompletedProcess(args=args, returncode=returncode, stdout=stdout, stderr=stderr)

    def commands(self, *prefix: str) -> list[list[str]]:
        return [call for call in self.calls if call[: len(prefix)] == list(prefix)]
