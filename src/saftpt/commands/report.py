"""Generate Excel reports with totals extracted from SAF-T (PT) files."""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Sequence

from ..schema import load_audit_file
from ..utils.reporting import aggregate_documents, write_excel_report


def default_report_destination(source: Path) -> Path:
    return source.with_name(f"{source.stem}_totais.xlsx")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="saftpt report",
        description=(
            "Gera um relatório em Excel com totais por tipo de documento e "
            "listagem das faturas."
        ),
    )
    parser.add_argument("saft", type=Path, help="Caminho para o ficheiro SAF-T (PT)")
    parser.add_argument(
        "--output",
        type=Path,
        dest="output",
        help="Ficheiro Excel de destino (por omissão <ficheiro>_totais.xlsx).",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.saft.exists():
        print(f"[ERRO] Ficheiro não encontrado: {args.saft}")
        return 2
    try:
        _, root, _ = load_audit_file(args.saft)
    except ValueError as exc:
        print(f"[ERRO] {exc}")
        return 1

    data = aggregate_documents(root)
    destination = args.output or default_report_destination(args.saft)
    write_excel_report(data, destination)
    print(f"Relatório de totais guardado em: {destination}")

    return 0


if __name__ == "__main__":  # pragma: no cover - execução directa
    raise SystemExit(main())
