#
# SPDX-FileCopyrightText: Copyright (c) 2025 provide.io llc. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#

"""Build orchestration: plans the requested formats, runs them, aggregates results.

Every format walks ``PENDING -> RESOLVING -> BUILDING -> SIGNING -> DONE`` or
ends in ``FAILED``. Formats run concurrently in a thread pool; the disk image
waits on the app bundle it packs, which is added to the plan when it was not
requested. A failing format never stops its siblings.
"""

from __future__ import annotations

from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor
import enum
from pathlib import Path
import tempfile
import threading

from attrs import define
from provide.foundation import logger
from provide.foundation.file.directory import ensure_dir

from shipwright.config import ShipwrightRuntimeConfig
from shipwright.exceptions import ConfigError, PackagerIOError, ShipwrightError
from shipwright.formats import FORMATS, BuildContext, FormatSpec
from shipwright.formats.common import remove_outputs
from shipwright.models import PackageArtifact, PackageFormat
from shipwright.resources import resolve_bundle
from shipwright.settings import BundleSettings, SigningConfig
from shipwright.signing import SigningEngine


class BuildState(enum.Enum):
    PENDING = "pending"
    RESOLVING = "resolving"
    BUILDING = "building"
    SIGNING = "signing"
    DONE = "done"
    FAILED = "failed"


@define
class FormatResult:
    """Outcome of one format's pipeline."""

    format: PackageFormat
    implicit: bool = False
    state: BuildState = BuildState.PENDING
    artifact: PackageArtifact | None = None
    error: BaseException | None = None

    @property
    def succeeded(self) -> bool:
        return self.state is BuildState.DONE

    @property
    def reason(self) -> str | None:
        if self.error is None:
            return None
        return f"{type(self.error).__name__}: {self.error}"


@define(frozen=True)
class BuildReport:
    """Per-format results plus the manifest written for the run."""

    results: dict[PackageFormat, FormatResult]
    manifest_path: Path | None = None
    error: ShipwrightError | None = None

    @property
    def requested(self) -> list[FormatResult]:
        return [r for r in self.results.values() if not r.implicit]

    @property
    def artifacts(self) -> list[PackageArtifact]:
        """Artifacts of the requested formats that finished."""
        return [r.artifact for r in self.requested if r.succeeded and r.artifact is not None]

    @property
    def failures(self) -> list[FormatResult]:
        return [r for r in self.requested if not r.succeeded]

    @property
    def success(self) -> bool:
        return self.error is None and not self.failures


def plan_formats(
    requested: Iterable[PackageFormat], registry: dict[PackageFormat, FormatSpec]
) -> list[tuple[PackageFormat, bool]]:
    """(format, implicit) in build order; requirements come before their dependents."""
    wanted = set(requested)
    ordered: list[tuple[PackageFormat, bool]] = []
    seen: set[PackageFormat] = set()

    def visit(package_format: PackageFormat, implicit: bool) -> None:
        if package_format in seen:
            return
        seen.add(package_format)
        for required in registry[package_format].requires:
            visit(required, required not in wanted)
        ordered.append((package_format, implicit))

    for package_format in PackageFormat:
        if package_format in wanted:
            visit(package_format, False)
    return ordered


def fallback_signing(settings: BundleSettings, runtime: ShipwrightRuntimeConfig) -> SigningConfig | None:
    """Settings win; otherwise the key from ``SHIPWRIGHT_SIGN_PRIVATE_KEY``."""
    if settings.signing is not None:
        return settings.signing
    if runtime.private_key:
        return SigningConfig(private_key=runtime.private_key, password=runtime.private_key_password)
    return None


class Orchestrator:
    """Runs every requested format for one ``BundleSettings``."""

    def __init__(
        self,
        settings: BundleSettings,
        runtime: ShipwrightRuntimeConfig | None = None,
        cancel_event: threading.Event | None = None,
        registry: dict[PackageFormat, FormatSpec] | None = None,
    ) -> None:
        self.settings = settings
        self.runtime = runtime or ShipwrightRuntimeConfig.from_env()
        self.cancel_event = cancel_event or threading.Event()
        self.registry = registry or FORMATS
        self.engine = SigningEngine(
            signing=fallback_signing(settings, self.runtime),
            manifest=settings.update_manifest,
        )
        self.plan = plan_formats(settings.formats, self.registry)
        self.results: dict[PackageFormat, FormatResult] = {
            package_format: FormatResult(format=package_format, implicit=implicit)
            for package_format, implicit in self.plan
        }

    def cancel(self) -> None:
        """Ask every running format to stop at its next stage boundary."""
        logger.warning("🔪 Build cancellation requested")
        self.cancel_event.set()

    def run(self) -> BuildReport:
        """Build every planned format and write the update manifest.

        Raises:
            ConfigError: an update manifest is requested without any signing key
            SigningError: the configured secret key cannot be decoded
        """
        if self.engine.manifest is not None and self.engine.signing is None:
            raise ConfigError(
                "An update manifest requires a signing key (settings or SHIPWRIGHT_SIGN_PRIVATE_KEY)"
            )
        self.engine.prepare()
        ensure_dir(self.settings.out_dir)
        logger.info(
            f"🚢 Building {self.settings.product_name} {self.settings.version}",
            formats=[f.value for f, _ in self.plan],
            arch=self.settings.target_arch,
        )

        workers = min(self.runtime.max_workers, len(self.plan))
        futures: dict[PackageFormat, Future[FormatResult]] = {}
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="shipwright") as executor:
            for package_format, _ in self.plan:
                requires = {r: futures[r] for r in self.registry[package_format].requires}
                futures[package_format] = executor.submit(self._run_format, package_format, requires)
        self._drop_orphaned()

        manifest_path = None
        error = None
        done = [r.artifact for r in self.results.values() if r.succeeded and r.artifact is not None]
        try:
            manifest_path = self.engine.write_manifest(self.settings.version, done, self.settings.target_arch)
        except ShipwrightError as e:
            logger.error(f"❌ Update manifest failed: {e}")
            error = e
        except OSError as e:
            logger.error(f"❌ Update manifest failed: {e}")
            error = PackagerIOError(f"Cannot write update manifest: {e}")

        report = BuildReport(results=self.results, manifest_path=manifest_path, error=error)
        self._log_summary(report)
        return report

    def _run_format(
        self, package_format: PackageFormat, requires: dict[PackageFormat, Future[FormatResult]]
    ) -> FormatResult:
        result = self.results[package_format]
        try:
            try:
                self._pipeline(result, requires)
            except OSError as e:
                raise PackagerIOError(f"I/O error while building {package_format.value}: {e}") from e
        except ShipwrightError as e:
            self._fail(result, e)
        except Exception as e:
            logger.exception(f"❌ Unexpected error while building {package_format.value}")
            self._fail(result, e)
        return result

    def _pipeline(self, result: FormatResult, requires: dict[PackageFormat, Future[FormatResult]]) -> None:
        package_format = result.format
        spec = self.registry[package_format]
        dependencies = {}
        for required, future in requires.items():
            dependency = future.result()
            if dependency.succeeded and dependency.artifact is not None:
                dependencies[required] = dependency.artifact

        with tempfile.TemporaryDirectory(prefix=f"shipwright-{package_format.value}-") as work_dir:
            ctx = BuildContext(
                work_dir=Path(work_dir),
                out_dir=self.settings.out_dir,
                source_date_epoch=self.runtime.source_date_epoch,
                tool_timeout=self.runtime.tool_timeout,
                appimage_runtime=self.runtime.appimage_runtime,
                cancel_event=self.cancel_event,
                dependencies=dependencies,
            )
            for required in spec.requires:
                ctx.dependency(required)

            ctx.check_cancelled("resolving")
            result.state = BuildState.RESOLVING
            resolved = resolve_bundle(self.settings, package_format)

            ctx.check_cancelled("building")
            result.state = BuildState.BUILDING
            logger.debug("🔧 Building format", format=package_format.value, work_dir=work_dir)
            result.artifact = spec.build(resolved, self.settings, ctx)

        # Signing reads the published file, so it is always the last step.
        result.state = BuildState.SIGNING
        result.artifact = self.engine.finalize(result.artifact)
        result.state = BuildState.DONE
        for warning in result.artifact.warnings:
            logger.warning(f"⚠️ {package_format.value}: {warning}")
        logger.info(f"✅ {package_format.value} done: {result.artifact.path.name}")

    def _fail(self, result: FormatResult, error: BaseException) -> None:
        previous = result.state
        result.state = BuildState.FAILED
        result.error = error
        if result.artifact is not None:
            remove_outputs([p for p in result.artifact.output_paths() if p.exists() or p.is_symlink()])
            result.artifact = None
        logger.error(f"❌ {result.format.value} failed during {previous.value}: {error}")

    def _drop_orphaned(self) -> None:
        """Remove outputs of implicitly added formats whose dependents all failed."""
        for result in self.results.values():
            if not result.implicit or result.artifact is None:
                continue
            dependents = [
                r for r in self.results.values() if result.format in self.registry[r.format].requires
            ]
            if dependents and not any(r.succeeded for r in dependents):
                logger.debug("🧹 Removing unused implicit outputs", format=result.format.value)
                remove_outputs(result.artifact.output_paths())
                result.artifact = None

    def _log_summary(self, report: BuildReport) -> None:
        done = len(report.artifacts)
        total = len(report.requested)
        if report.success:
            logger.info(f"📦 Built {done}/{total} formats")
        else:
            logger.warning(f"⚠️ Built {done}/{total} formats", failed=[r.format.value for r in report.failures])


# 🚢📦🔚
