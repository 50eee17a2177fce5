"""Activation and deactivation entry points for the editor host."""

import asyncio
from pathlib import Path
from typing import Awaitable, List, Mapping, Optional

from .config import ClientOptions, Config
from .editor.host import EditorHost, OutputChannel
from .event import Disposable
from .lsp.client import LanguageClient
from .lsp.launcher import ServerProcessConfig
from .subscription import HintSubscription
from .util.error import StartupFailure
from .util.log import Log


class ExtensionContext:
    """What the host hands to ``activate``."""

    def __init__(
        self,
        host: EditorHost,
        options: Optional[ClientOptions] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.host = host
        self.options = options
        self.environ = environ
        self.subscriptions: List[Disposable] = []

    def dispose(self) -> None:
        while self.subscriptions:
            self.subscriptions.pop().dispose()


class Extension:
    """Owns the single language client and the hint subscription."""

    def __init__(self):
        self.client: Optional[LanguageClient] = None
        self.subscription: Optional[HintSubscription] = None
        self.output: Optional[OutputChannel] = None
        self.startup: Optional["asyncio.Task[None]"] = None
        self._log = Log.create({"service": "extension"})

    @property
    def activated(self) -> bool:
        return self.client is not None

    async def activate(self, context: ExtensionContext) -> None:
        """Create the client, register hints and start the server in the background."""
        if self.client is not None:
            return

        options = context.options or Config.get()
        if options.log_level:
            Log.set_level(options.log_level)

        host = context.host
        root = host.workspace_root
        config = ServerProcessConfig.from_options(options, context.environ, cwd=root)

        self.output = host.create_output_channel(options.trace_channel)
        self.client = LanguageClient(
            config,
            options,
            self.output,
            root_uri=Path(root).resolve().as_uri() if root else None,
        )
        context.subscriptions.append(self.client.attach(host))

        self.subscription = HintSubscription(host, self.client, options)
        self.subscription.listen(context.subscriptions)
        self.subscription.reconfigure()

        self.startup = asyncio.ensure_future(self.client.start())
        self.startup.add_done_callback(self._on_started)
        self._log.info("Activated", {"command": config.command})

    async def ready(self) -> None:
        """Wait for the server; raises the startup failure if there was one."""
        if self.startup is None:
            return
        await asyncio.shield(self.startup)

    def deactivate(self) -> Optional[Awaitable[None]]:
        """Dispose the hint registration and return the client's stop awaitable."""
        if self.client is None:
            return None

        if self.subscription is not None:
            self.subscription.dispose()
        if self.startup is not None and not self.startup.done():
            self.startup.cancel()
        return self.client.stop()

    def _on_started(self, task: "asyncio.Task[None]") -> None:
        if task.cancelled():
            self._log.debug("Startup cancelled")
            return

        error = task.exception()
        if error is None:
            self._log.info("Language client ready")
            if self.subscription is not None:
                self.subscription.refresh()
        elif isinstance(error, StartupFailure):
            # Already reported to the user by the client.
            self._log.debug("Startup failed", {"error": str(error)})
        else:
            self._log.error("Language client failed to start", {"error": str(error)})


_extension = Extension()


async def activate(context: ExtensionContext) -> None:
    await _extension.activate(context)


def deactivate() -> Optional[Awaitable[None]]:
    return _extension.deactivate()
