"""``saftpt`` command line: validate SAF-T (PT) files and summarise totals."""

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass
from typing import Callable, Iterable, Mapping, Sequence

from . import __version__
from .commands import report, validate

CommandCallable = Callable[[list[str]], int | None]


def _exit_code(code: object) -> int:
    if code is None:
        return 0
    if isinstance(code, int):
        return code
    print(str(code), file=sys.stderr)
    return 1


@dataclass(frozen=True)
class CommandSpec:
    """A sub-command: its name, the one-line help and the ``main`` it runs."""

    name: str
    summary: str
    handler: CommandCallable

    def run(self, argv: list[str]) -> int:
        try:
            result = self.handler(argv)
        except SystemExit as exc:  # argparse exits on --help and usage errors
            return _exit_code(exc.code)
        return 0 if result is None else int(result)


_COMMANDS: tuple[CommandSpec, ...] = (
    CommandSpec(
        name="validate",
        summary="Validação estrutural SAF-T (PT) 1.04_01 com resumo, JSON ou log Excel.",
        handler=validate.main,
    ),
    CommandSpec(
        name="report",
        summary="Relatório Excel com totais por tipo de documento.",
        handler=report.main,
    ),
)

_COMMAND_INDEX: Mapping[str, CommandSpec] = {spec.name: spec for spec in _COMMANDS}


def available_commands() -> Iterable[CommandSpec]:
    return _COMMANDS


def build_parser() -> argparse.ArgumentParser:
    epilog = "\n".join(f"  {spec.name:<10} {spec.summary}" for spec in _COMMANDS)
    parser = argparse.ArgumentParser(
        prog="saftpt",
        description="Ferramentas SAF-T (PT)",
        epilog=f"comandos:\n{epilog}",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("command", choices=[spec.name for spec in _COMMANDS], metavar="comando")
    parser.add_argument("args", nargs=argparse.REMAINDER, help=argparse.SUPPRESS)
    return parser


def run(command: str, argv: Sequence[str] | None = None) -> int:
    """Execute *command* forwarding ``argv`` to its handler."""

    spec = _COMMAND_INDEX.get(command)
    if spec is None:
        raise ValueError(f"Comando desconhecido: {command}")
    return spec.run(list(argv or []))


def main(argv: Sequence[str] | None = None) -> int:
    namespace = build_parser().parse_args(argv)
    return run(namespace.command, namespace.args)


if __name__ == "__main__":  # pragma: no cover - execução directa
    raise SystemExit(main())
