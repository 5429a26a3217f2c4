from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from .markers import debug_marker_name, output_file_name, success_marker_name


class ConverterGateway(Protocol):
    def convert_to_markdown(self, input_uri: str) -> str:
        """Convert the given input file into Markdown synchronously.
        This is a blocking call; callers should offload to threads if needed.
        """


class TriggerTarget(Protocol):
    def trigger(self) -> None:
        ...


@dataclass(frozen=True)
class JobPaths:
    input_path: Path
    debug_path: Path
    success_path: Path
    output_path: Path

    @classmethod
    def for_input(cls, input_path: Path, output_dir: Path) -> "JobPaths":
        debug_name = debug_marker_name(input_path.name)
        return cls(
            input_path=input_path,
            debug_path=output_dir / debug_name,
            success_path=output_dir / success_marker_name(debug_name),
            output_path=output_dir / output_file_name(input_path.name),
        )
