"""Verify phase: compile the project and run the verification tests."""

from __future__ import annotations

from project_verifier.phases.base import Phase, StepGroup
from project_verifier.schemas import StepOutcome

_LINT_COMPILE_FLAGS = [
    "-DcompileOptionXlint=-Xlint:all",
    "-DcompileOptionXdoclint=-Xdoclint:all/private",
    "-Dmaven.compiler.showWarnings=true",
    "-DcompileOptionFail=true",
]
_QUIET_COMPILE_FLAGS = [
    "-DcompileOptionXlint=-Xlint:none",
    "-DcompileOptionXdoclint=-Xdoclint:none",
    "-Dmaven.compiler.showWarnings=false",
    "-DcompileOptionFail=false",
]


class VerifyPhase(Phase):
    name = "verify"
    label = '"Test Project"'
    failure_prefix = "Unable to verify project."
    opening_title = "Verification Setup Phase"
    closing_title = "Verification Cleanup Phase"
    required_state = ("project", "version", "tester")

    def steps(self) -> list[StepGroup]:
        return [
            StepGroup("Displaying environment setup...", self.show_environment),
            StepGroup("Updating Maven dependencies...", self.update_dependencies),
            StepGroup("Compiling project main code...", self.compile_main),
            StepGroup("Compiling project test code...", self.compile_tests),
            StepGroup(
                "Running verification tests...",
                self.run_verification,
                banner="Verification Testing Phase",
            ),
            StepGroup(
                "Running debug tests...",
                self.run_debug,
                when=lambda: self.state.passed is not True,
            ),
        ]

    def show_environment(self) -> None:
        for command, label in (("java", "Java runtime"), ("javac", "Java compiler"), ("mvn", "Maven")):
            self.runner.run(
                command,
                ["--version"],
                title=f"Displaying {label} version",
                error=f"Unable to display {label} version",
            )

    def update_dependencies(self) -> None:
        self.status["maven"] = self.runner.run(
            "mvn",
            ["-f", f"{self.context.main_dir}/pom.xml", "-ntp", "dependency:go-offline"],
            error="Updating returned non-zero exit code",
        )

    def compile_main(self) -> None:
        main_dir = f"{self.context.main_dir}/"
        self.status["mainWarnings"] = self.runner.run(
            "mvn",
            ["-ntp", *_LINT_COMPILE_FLAGS, "compile"],
            title="Compiling project main code (with warnings enabled)",
            cwd=main_dir,
        )
        self.status["mainCompile"] = self.runner.run(
            "mvn",
            ["-ntp", *_QUIET_COMPILE_FLAGS, "clean", "compile"],
            title="Recompiling project main code (with warnings disabled)",
            error="Recompiling returned non-zero exit code",
            cwd=main_dir,
        )
        if self.status["mainWarnings"] != 0:
            self.console.annotate_warning(
                "Unable to compile code without warnings. This will not cause the tests to fail, "
                "but the warnings must be fixed before requesting code review."
            )
        self.runner.run(
            "ls",
            ["-m", f"{self.context.main_dir}/target/classes"],
            title="Listing main class files",
            error="Unable to list main class directory",
        )

    def compile_tests(self) -> None:
        self.status["testCompile"] = self.runner.run(
            "mvn",
            [
                "-ntp",
                "-DcompileOptionXlint=-Xlint:none",
                "-DcompileOptionXdoclint=-Xdoclint:none",
                "-DcompileOptionFail=false",
                "-Dmaven.compiler.failOnWarning=false",
                "-Dmaven.compiler.showWarnings=false",
                "test-compile",
            ],
            title="Compiling project test code",
            error="Compiling returned non-zero exit code",
            cwd=f"{self.context.main_dir}/",
        )
        self.runner.run(
            "ls",
            ["-m", f"{self.context.main_dir}/target/test-classes"],
            title="Listing test class files",
            error="Unable to list test class directory",
        )

    def run_verification(self) -> None:
        project = self.state.project
        version = self.state.version
        self.status["verify"] = self.runner.run(
            "mvn",
            ["-ntp", f"-Dtest={self.state.tester}", "-DexcludedGroups=none()|!verify", "test"],
            title="Running verification tests",
            cwd=f"{self.context.main_dir}/",
        )
        self.state.passed = self.status["verify"] == 0
        if self.state.passed:
            self.state.message = f"All Project {project} verification tests of {version} passed!"
            self.console.success(self.state.message)
        else:
            self.state.message = (
                f"One or more Project {project} verification tests of {version} failed."
            )

    def run_debug(self) -> StepOutcome:
        """Gather extra diagnostics for a failed run, then fail the phase."""
        self.status["debug"] = self.runner.run(
            "mvn",
            ["-ntp", f"-Dtest={self.state.tester}", "-DexcludedGroups=verify", "test"],
            title="Running debug tests",
            cwd=f"{self.context.main_dir}/",
        )
        return StepOutcome.fatal(str(self.state.message))
