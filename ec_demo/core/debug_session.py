# ec_demo/core/debug_session.py

"""
The debug-log session behind the Debug tab and the `tail` command.

It owns the receiver for DBG_FRAME_AVAILABLE notifications, the frame decoder
of the attached ELF and the log view. The worker thread reads raw frames from
the source as notifications arrive; `update()` drains them once per tick.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import click

from .errors import CommandError, DecodeError, MetadataError, SourceError, UnexpectedEof
from .frame_decoder import FrameDecoder
from .log_view import MAX_LOGS, LogLine, LogView
from .notifications import Event, NotificationService
from .sources import MockSource, Source

logger = logging.getLogger(__name__)


# --- Command sub-protocol ---

@dataclass(frozen=True)
class Command:
    action: str
    path: Optional[Path] = None


# The command line is not a shell: no --help flags, no usage output.
_COMMAND_SETTINGS = dict(help_option_names=[])


@click.command("attach", context_settings=_COMMAND_SETTINGS)
@click.argument("path", type=click.Path(path_type=Path))
def _attach(path: Path) -> Command:
    return Command("attach", path)


@click.command("detach", context_settings=_COMMAND_SETTINGS)
def _detach() -> Command:
    return Command("detach")


@click.command("help", context_settings=_COMMAND_SETTINGS)
def _help() -> Command:
    return Command("help")


COMMANDS = {command.name: command for command in (_attach, _detach, _help)}


def parse_command(line: str) -> Command:
    """
    Parses one line typed into the command box.

    Tokens are split on whitespace; the first selects the command and the
    rest are its arguments.

    Raises:
        CommandError: unknown command, missing or extra arguments.
    """
    tokens = line.split()
    if not tokens or tokens[0] not in COMMANDS:
        raise CommandError("Invalid command")

    command = COMMANDS[tokens[0]]
    try:
        with command.make_context(tokens[0], tokens[1:]) as ctx:
            return command.invoke(ctx)
    except click.ClickException as e:
        raise CommandError("Invalid command") from e


# --- Session ---

class DebugSession:
    """Attach/detach state machine plus the per-tick drain of debug frames."""

    def __init__(self, source: Source, service: NotificationService, bin_path: Optional[Path] = None,
                 max_logs: int = MAX_LOGS):
        self.source = source
        self.log_view = LogView(max_logs)
        self._decoder: Optional[FrameDecoder] = None
        self._bin_name: Optional[str] = None
        self.frames_decoded = 0

        # The worker reads the frame itself so bursts are not throttled to one per tick.
        self._rx = service.event_receiver(Event.DBG_FRAME_AVAILABLE, lambda event: source.get_dbg())

        if bin_path is not None:
            self.attach_elf(bin_path)
        else:
            self.detach_elf()
            if isinstance(source, MockSource):
                self.log_view.log_meta("Try running the command `attach mock-bin`")

    @property
    def title(self) -> str:
        return f"Debug Information ({self._bin_name or 'None'})"

    @property
    def attached(self) -> bool:
        return self._decoder is not None

    @property
    def receiver(self):
        return self._rx

    # --- Commands ---

    def handle_command(self, line: str) -> None:
        try:
            command = parse_command(line)
        except CommandError as e:
            logger.debug(f"Rejected command '{line}'")
            self.log_view.log_meta(e)
            return

        if command.action == "attach":
            self.attach_elf(command.path)
        elif command.action == "detach":
            self.detach_elf()
        else:
            self.log_view.display_help()

    def attach_elf(self, elf_path: Path) -> bool:
        """Loads the ELF's decode table and resumes the receiver. Returns True on success."""
        elf_path = Path(elf_path)
        try:
            decoder = self._load_decoder(elf_path)
        except (MetadataError, OSError) as e:
            self._decoder = None
            self._bin_name = None
            logger.warning(f"Failed to attach ELF '{elf_path}': {e}")
            self.log_view.log_meta(f"Failed to attach ELF: {e}")
            return False

        self._decoder = decoder
        self._bin_name = elf_path.name
        self.log_view.log_meta(f"Attached ELF: {self._bin_name}")
        logger.info(f"Attached ELF: {elf_path}")
        self._rx.start()

        # The notification for the pending frame was missed while paused; read once to restart the stream.
        try:
            self.source.get_dbg()
        except SourceError as e:
            logger.debug(f"Initial debug read failed: {e}")
        return True

    @staticmethod
    def _load_decoder(elf_path: Path) -> FrameDecoder:
        if not elf_path.name:
            raise MetadataError("No file name found in ELF path")
        try:
            blob = elf_path.read_bytes()
        except OSError as e:
            raise MetadataError("Failed to read ELF") from e
        return FrameDecoder.from_elf(blob)

    def detach_elf(self) -> None:
        self._decoder = None
        self._bin_name = None
        self.log_view.log_meta("No ELF attached so debug logs are not available")
        self._rx.stop()

    # --- Tick ---

    def update(self) -> List[LogLine]:
        """
        Drains every frame the worker queued since the last tick.

        Each delivery is decoded once. Returns the lines added to the view.
        ReceiverDisconnected propagates.
        """
        added: List[LogLine] = []
        if self._decoder is None:
            return added

        while True:
            try:
                data = self._rx.receive()
            except SourceError as e:
                added.append(self.log_view.log_meta(e))
                continue
            if data is None:
                break

            self._decoder.received(data)
            try:
                frame = self._decoder.decode()
            except UnexpectedEof:
                continue
            except DecodeError as e:
                logger.debug(f"Malformed defmt packet: {e}")
                added.append(self.log_view.log_meta("Received malformed defmt packet"))
                continue
            self.frames_decoded += 1
            added.extend(self.log_view.log_frame(frame))
        return added

    def close(self) -> None:
        self._rx.close()

    def __enter__(self) -> "DebugSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
