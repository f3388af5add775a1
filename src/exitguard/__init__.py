"""
exitguard - verify that a local-mode engine contains fatal task errors.

A ``NoExitGuard`` replaces the process-wide authority, blocks every
process exit and records the first one. ``ExitInterceptionHarness`` runs
a workload under the guard and fails if anything tried to exit.
"""

__version__ = "0.1.0"

from exitguard.authority import get_current_authority, set_current_authority
from exitguard.guard import GuardState, NoExitGuard, TerminationAttempt, no_exit_guard
from exitguard.harness import ExitInterceptionHarness, HarnessOutcome, OutcomeKind

__all__ = [
    "ExitInterceptionHarness",
    "GuardState",
    "HarnessOutcome",
    "NoExitGuard",
    "OutcomeKind",
    "TerminationAttempt",
    "get_current_authority",
    "no_exit_guard",
    "set_current_authority",
]
