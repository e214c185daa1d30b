"""The three phase processes of a verification run.

Usage::

    from project_verifier.phases import PHASES, build_services

    services = build_services(context)
    result = PHASES["verify"](services).run()
"""

from project_verifier.phases.base import Phase, PhaseServices, StepGroup, build_services
from project_verifier.phases.cleanup import CleanupPhase
from project_verifier.phases.setup import SetupPhase
from project_verifier.phases.verify import VerifyPhase

PHASES: dict[str, type[Phase]] = {
    "setup": SetupPhase,
    "verify": VerifyPhase,
    "cleanup": CleanupPhase,
}

__all__ = [
    "PHASES",
    "CleanupPhase",
    "Phase",
    "PhaseServices",
    "SetupPhase",
    "StepGroup",
    "VerifyPhase",
    "build_services",
]
