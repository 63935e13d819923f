import asyncio
import signal

from loguru import logger

from drainer.app.composition import DrainerDependencies, create_drainer_dependencies
from drainer.app.config.settings import Settings
from drainer.app.core import SERVICE_NAME


def _log(event: str, **kwargs) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).info("")


async def run_drainer(
    settings: Settings,
    *,
    dependencies: DrainerDependencies | None = None,
    install_signal_handlers: bool = True,
) -> None:
    """Connect, poll until the sink stops (drained, or a signal in daemon mode), then flush and close."""
    deps = dependencies or create_drainer_dependencies(settings)
    try:
        await deps.connect()
        sink = deps.sink

        if install_signal_handlers:
            def request_shutdown() -> None:
                _log("shutdown_signal")
                sink.stop()

            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                try:
                    loop.add_signal_handler(sig, request_shutdown)
                except NotImplementedError:
                    pass

        sink.start()
        _log("drainer_started", daemon=settings.daemon)
        await sink.wait()
    finally:
        await deps.close()
    _log("drainer_stopped")


def main() -> None:
    from drainer.app.cli.app import app

    app()


if __name__ == "__main__":
    main()
