"""Lifecycle coordinator driving terraform through apply, refresh and destroy."""

from __future__ import annotations

import logging
import shutil
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator

from tfharness.constants import TFSTATE_FILENAME, Phase
from tfharness.core.cleanup import CleanupRegistry
from tfharness.core.commands import CommandSerializer
from tfharness.core.config import ConfigLoader, HarnessConfig
from tfharness.core.signals import SignalGuard
from tfharness.core.state import State, StateStore
from tfharness.exceptions import HarnessError, LifecycleError, SetupError
from tfharness.utils import copy_plan, find_terraform

logger = logging.getLogger(__name__)

CleanupRegistrar = Callable[[Callable[[], None]], Any]
FatalHandler = Callable[[HarnessError], Any]


class Harness:
    """Entry point for provisioning a plan with terraform inside a test.

    A harness owns one working directory for its whole session and moves
    through ``UNINITIALIZED -> APPLIED -> {REFRESHED, DESTROYED}``. All
    terraform invocations go through a single ``CommandSerializer``, so the
    signal guard's emergency destroy and the main test flow never touch the
    working directory at the same time.

    Failures raise a ``HarnessError`` subclass. When ``on_fatal`` is given it
    is called with the error first, letting a test framework turn it into its
    own abort (the pytest plugin passes a ``pytest.fail`` wrapper).

    Parameters
    ----------
    config : HarnessConfig | None
        Harness settings; loaded with ConfigLoader when omitted
    register_cleanup : Callable | None
        Registers a zero-argument teardown callback with the enclosing test
        (e.g. ``request.addfinalizer``). Defaults to an internal registry run
        when the harness is used as a context manager
    make_workdir : Callable[[], Path] | None
        Creates a fresh working directory. Defaults to a temporary directory
        removed by the internal registry
    on_fatal : Callable[[HarnessError], Any] | None
        Hook converting harness errors into the caller's fatal failure
    serializer : CommandSerializer | None
        Command runner; built from the config when omitted
    """

    def __init__(
        self,
        config: HarnessConfig | None = None,
        register_cleanup: CleanupRegistrar | None = None,
        make_workdir: Callable[[], Path] | None = None,
        on_fatal: FatalHandler | None = None,
        serializer: CommandSerializer | None = None,
    ) -> None:
        self.config = config or ConfigLoader().load()
        self._on_fatal = on_fatal
        self._registry: CleanupRegistry | None = None

        if register_cleanup is None:
            self._registry = CleanupRegistry()
            register_cleanup = self._registry

        self._register_cleanup = register_cleanup
        self._make_workdir = make_workdir or self._temporary_workdir

        if serializer is None:
            with self._failures("while locating terraform"):
                terraform_path = find_terraform(self.config.terraform_path)

            serializer = CommandSerializer(
                terraform_path=terraform_path,
                plugin_cache_dir=self.config.plugin_cache_dir,
                cancel_grace_seconds=self.config.cancel_grace_seconds,
            )

        self.serializer = serializer
        self.terraform_path = serializer.terraform_path
        self._store = StateStore()
        self._lock = threading.Lock()
        self._phase = Phase.UNINITIALIZED
        self._guard: SignalGuard | None = None

    def __enter__(self) -> "Harness":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        try:
            if self._registry is not None:
                self._registry.cleanup_all()
        finally:
            self.close()

    @property
    def phase(self) -> Phase:
        with self._lock:
            return self._phase

    @property
    def state(self) -> State | None:
        """Copy of the parsed terraform state; None until apply succeeds."""
        return self._store.state

    @property
    def plan_dir(self) -> Path | None:
        """Working directory holding the plan and state, useful when debugging failures."""
        return self._store.plan_dir

    @property
    def signal_guard(self) -> SignalGuard | None:
        return self._guard

    def _temporary_workdir(self) -> Path:
        plan_dir = Path(tempfile.mkdtemp(prefix="tfharness-"))

        if self._registry is not None:
            self._registry.register(
                lambda: shutil.rmtree(plan_dir, ignore_errors=True),
                label=f"workdir {plan_dir}",
            )

        return plan_dir

    @contextmanager
    def _failures(self, action: str, fatal: bool = True) -> Iterator[None]:
        try:
            yield
        except HarnessError as e:
            logger.error("%s: %s", action, e.args[0] if e.args else e)
            if fatal and self._on_fatal is not None:
                self._on_fatal(e)
            raise

    def _set_phase(self, phase: Phase) -> None:
        with self._lock:
            if self._phase is Phase.DESTROYED and phase is not Phase.DESTROYED:
                logger.debug("Ignoring transition to %s after destroy", phase.value)
                return
            self._phase = phase

    def apply(self, plan_source: str | Path) -> State:
        """Provision the plan and parse the resulting state.

        Copies ``plan_source`` into a fresh working directory, runs
        ``terraform init`` and ``terraform apply -auto-approve``, and parses
        ``terraform.tfstate``. Unless cleanup is disabled (``NO_CLEANUP``),
        ``destroy`` is registered to run when the enclosing test finishes.

        Parameters
        ----------
        plan_source : str | Path
            Terraform definition file to provision

        Returns
        -------
        State
            The parsed state document

        Raises
        ------
        LifecycleError
            If apply was already called on this harness
        SetupError
            If the plan file cannot be copied
        CommandError
            If init or apply fails
        StateDecodeError
            If the resulting state document is missing or malformed
        """
        with self._failures("while applying terraform"):
            with self._lock:
                if self._phase is not Phase.UNINITIALIZED or self._store.plan_dir is not None:
                    raise LifecycleError(
                        f"apply() may only be called once per harness (phase: {self._phase.value})"
                    )
                try:
                    plan_dir = Path(self._make_workdir())
                except OSError as e:
                    raise SetupError(f"Could not create working directory: {e}") from e
                self._store.plan_dir = plan_dir

            copy_plan(plan_source, plan_dir)

        with self._failures("while initializing terraform"):
            self.serializer.run(plan_dir, [f"-chdir={plan_dir}", "init"])

        if self.config.cleanup:
            self._register_cleanup(self.destroy)
        else:
            logger.info("Cleanup disabled; resources in %s will not be destroyed", plan_dir)

        with self._failures("while applying terraform"):
            self.serializer.run(plan_dir, ["apply", "-auto-approve"])

        with self._failures("while reading tfstate"):
            state = self._store.parse(plan_dir / TFSTATE_FILENAME)

        self._set_phase(Phase.APPLIED)
        return state

    def refresh(self) -> State:
        """Run ``terraform refresh`` in the existing working directory and re-parse state.

        Raises
        ------
        LifecycleError
            If apply has not succeeded yet or the harness was destroyed
        """
        with self._failures("while refreshing terraform"):
            with self._lock:
                if self._phase not in (Phase.APPLIED, Phase.REFRESHED):
                    raise LifecycleError(
                        f"run apply() first! (phase: {self._phase.value})"
                    )
            plan_dir = self._store.plan_dir

            self.serializer.run(plan_dir, ["refresh"])
            state = self._store.parse(plan_dir / TFSTATE_FILENAME)

        self._set_phase(Phase.REFRESHED)
        return state

    def destroy(self) -> None:
        """Destroy the provisioned resources.

        Re-invokes ``terraform destroy`` on every call; terraform treats a
        destroy with nothing left as a no-op. Does nothing before apply has
        created a working directory. If the signal guard is already tearing
        down on another thread, waits for it instead of destroying again.
        """
        guard = self._guard
        if guard is not None and guard.fired and not guard.on_watcher_thread():
            logger.info("Signal-triggered teardown in progress; waiting for it to finish")
            guard.wait()
            return

        self._destroy(fatal=True)

    def _destroy(self, fatal: bool) -> None:
        plan_dir = self._store.plan_dir

        if plan_dir is None:
            logger.debug("destroy() called before apply(); nothing to tear down")
            return

        with self._failures("while destroying resources with terraform", fatal=fatal):
            self.serializer.run(plan_dir, ["destroy", "-auto-approve"])

        self._set_phase(Phase.DESTROYED)

    def handle_signals(self, forward: bool | None = None) -> SignalGuard:
        """Destroy resources when the process receives SIGINT or SIGTERM.

        No other handler for these signals should be installed afterwards.
        With ``forward`` the signal is re-delivered to the previous handler
        once teardown completes, so the test run still stops.

        Parameters
        ----------
        forward : bool | None
            Re-deliver the signal after teardown; defaults to the config value

        Returns
        -------
        SignalGuard
            The installed guard
        """
        if forward is None:
            forward = self.config.forward_signals

        with self._failures("while installing signal handlers"):
            if self._guard is not None:
                raise LifecycleError("signal handling is already installed on this harness")

            guard = SignalGuard(lambda: self._destroy(fatal=False), forward=forward)
            guard.install()
            self._guard = guard

        return guard

    def close(self) -> None:
        """Disarm the signal guard, if installed."""
        if self._guard is not None:
            self._guard.disarm()
