"""ProcessTreeReaper: terminate a process and everything descended from it.

Uses one ``psutil`` snapshot of the process table per call. Capture is
best-effort: a process forked after the snapshot is not seen, which is why
the sandbox also spawns children as session leaders and signals the group.
"""

from __future__ import annotations

import logging
import os
import signal

import psutil

logger = logging.getLogger(__name__)


class ProcessTreeReaper:
    """Collects and kills the transitive descendants of a root pid."""

    def collect(self, root_pid: int) -> list[int]:
        """Return *root_pid* followed by its descendants in discovery order."""
        parents: dict[int, int | None] = {}
        for proc in psutil.process_iter(["pid", "ppid"]):
            info = proc.info
            parents[info["pid"]] = info.get("ppid")

        found = [root_pid]
        seen = {root_pid}
        grew = True
        while grew:
            grew = False
            for pid, ppid in parents.items():
                if pid not in seen and ppid in seen:
                    found.append(pid)
                    seen.add(pid)
                    grew = True
        return found

    def reap(self, root_pid: int, *, kill_group: bool = False) -> list[int]:
        """Kill the tree rooted at *root_pid*, descendants first.

        Does not wait for the processes to exit. Processes that are already
        gone are skipped. Returns the pids that were signalled.
        """
        killed: list[int] = []
        for pid in reversed(self.collect(root_pid)):
            try:
                psutil.Process(pid).kill()
            except psutil.NoSuchProcess:
                continue
            except psutil.AccessDenied:
                logger.warning("Reaper: access denied killing pid %d", pid)
                continue
            logger.info("Reaper: killed pid %d (tree of %d)", pid, root_pid)
            killed.append(pid)

        if kill_group:
            self.kill_group(root_pid)
        return killed

    @staticmethod
    def kill_group(pgid: int) -> None:
        """SIGKILL the process group *pgid* (POSIX only, no-op elsewhere).

        Catches grandchildren reparented to init before the snapshot.
        """
        if os.name != "posix":
            return
        try:
            os.killpg(pgid, signal.SIGKILL)
        except (ProcessLookupError, PermissionError):
            return
        logger.debug("Reaper: signalled process group %d", pgid)
