"""Cleanup phase: publish diagnostics, update the release, save the tests cache.

Every group here is recoverable. A failed verification still gets its
reports and actual output uploaded, and the cache is saved either way.
"""

from __future__ import annotations

from project_verifier.errors import ArtifactUploadError, VerifierError
from project_verifier.identity import version_from_ref
from project_verifier.phases.base import Phase, StepGroup
from project_verifier.schemas import UploadResult


def _check_upload(result: UploadResult) -> None:
    if result.failed_items:
        raise ArtifactUploadError(f"Failed to upload: {', '.join(result.failed_items)}.")


class CleanupPhase(Phase):
    name = "cleanup"
    label = '"Post Test Project"'
    failure_prefix = "Cleanup failed."
    closing_title = "Cleanup Logging Phase"
    persists_state = False

    def steps(self) -> list[StepGroup]:
        return [
            StepGroup(
                "Generating test reports...",
                self.publish_reports,
                recoverable=True,
                warning_prefix="Encountered issues generating reports.",
                banner="Cleanup Reporting Phase",
                when=self._verification_failed,
                skip_message="Skipping; no debug output to generate.",
            ),
            StepGroup(
                "Uploading actual files...",
                self.upload_actual,
                recoverable=True,
                warning_prefix="Encountered issues uploading actual files.",
                when=self._verification_failed,
            ),
            StepGroup(
                "Updating release...",
                self.update_release,
                recoverable=True,
                warning_prefix="Encountered issues updating release.",
                banner="Cleanup Release Phase",
            ),
            StepGroup(
                f"Saving {self.context.test_dir} cache...",
                self.save_cache,
                recoverable=True,
                banner="Cleanup Cache Phase",
            ),
        ]

    def _verification_failed(self) -> bool:
        return self.state.passed is False

    def publish_reports(self) -> None:
        main_dir = self.context.main_dir
        self.status["reports"] = self.runner.run(
            "mvn",
            ["-ntp", "surefire-report:report-only"],
            title="Generating reports",
            error="Unable to generate reports",
            cwd=f"{main_dir}/",
        )
        self.console.info("Generated surefire reports.")

        self.status["site"] = self.runner.run(
            "mvn",
            ["-ntp", "-DgenerateReports=false", "site"],
            title="Generating report site",
            error="Unable to generate report site",
            cwd=f"{main_dir}/",
        )
        self.console.info("Generated report site.")

        self.runner.run(
            "ls",
            ["-m", f"{main_dir}/target/site"],
            title="Listing project report site",
            error="Unable to list site directory",
        )

        self.console.info("")
        self.console.end_group()
        self.console.start_group("Uploading report files...")

        self.status["siteZip"] = self.runner.run(
            "zip",
            ["-r", "../../results.zip", "site"],
            title="Zipping test report site",
            error="Unable to zip test report site",
            cwd=f"{main_dir}/target/",
        )
        self.runner.run("ls", ["-l", "."], title="Listing working directory", error="Unable to list working directory")

        self.console.info("\nUploading artifacts...")
        result = self.services.artifacts.upload("Test Reports", ["results.zip"], self.context.workspace)
        self.status["sizeUpload"] = result.size
        _check_upload(result)

    def upload_actual(self) -> None:
        test_dir = self.context.test_dir
        actual_dir = self.context.workspace / test_dir / "actual"
        found = sorted(actual_dir.glob("*")) if actual_dir.is_dir() else []
        if not found:
            self.console.info("Skipping; no actual output files to upload.")
            return

        self.console.info(f"Found: {','.join(str(path) for path in found)}")
        self.status["actualZip"] = self.runner.run(
            "zip",
            ["-r", "../actual.zip", "actual"],
            title="Zipping actual output files",
            error="Unable to zip actual output files",
            cwd=f"{test_dir}/",
        )
        self.runner.run("ls", ["-l", "."], title="Listing working directory", error="Unable to list working directory")

        # keep actual output out of the tests cache
        self.runner.run(
            "rm",
            ["-rf", f"{test_dir}/actual"],
            title="Removing actual files",
            error="Unable to remove actual files",
        )

        self.console.info("\nUploading artifacts...")
        result = self.services.artifacts.upload("Actual Output", ["actual.zip"], self.context.workspace)
        self.status["actualUpload"] = result.size
        self.console.info(f"Uploaded {result.size} bytes.")
        _check_upload(result)

    def update_release(self) -> None:
        ctx = self.context
        if self.state.passed is None or self.state.message is None or not ctx.ref.startswith("refs/tags/v"):
            self.console.info(f"Skipping; ref {ctx.ref} is not a valid release or tag.")
            return

        version = self.state.version or version_from_ref(ctx.ref)
        releases = self.services.releases
        release = releases.get_release_by_tag(ctx.owner, ctx.repo, version)
        self.status["release"] = release.status
        if release.status != 200 or release.id is None:
            self.console.debug(release.model_dump_json())
            raise VerifierError(f"Unable to find release: {version}")

        self.console.info(f"Found release {release.tag_name}.")
        body = (
            f":octocat: {self.state.message} "
            f"See action run #{ctx.run_number} ({ctx.run_id})."
        )
        update = releases.update_release(ctx.owner, ctx.repo, release.id, body)
        self.status["release"] = update.status
        if update.status != 200:
            self.console.debug(update.model_dump_json())
            raise VerifierError(f"Unable to update release: {version}")
        self.console.info(f"Updated release {update.tag_name} description.")

    def save_cache(self) -> None:
        key = self.state.test_key
        if key is None:
            self.console.info("Unable to cache; key not found")
            return
        if self.state.test_cache == key:
            self.console.info("Skipping; cache already exists.")
            return

        self.console.info(f"Saving {key} to cache...")
        saved = self.services.cache.save([self.context.test_dir], key)
        self.status["testCache"] = saved
        self.console.info(f"Saved cache: {saved}")
