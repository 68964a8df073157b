"""Validate SAF-T (PT) files and print the summary or the JSON result."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Sequence

from ..validator import export_report, summarize, validate_file

LOGGER = logging.getLogger("saftpt.commands.validate")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="saftpt validate",
        description="Validação estrutural de ficheiros SAF-T (PT) 1.04_01.",
    )
    parser.add_argument("saft", type=Path, help="Caminho para o ficheiro SAF-T (PT)")
    parser.add_argument(
        "--json",
        action="store_true",
        help="Imprimir o resultado completo em JSON.",
    )
    parser.add_argument(
        "--excel",
        type=Path,
        dest="excel_path",
        help="Gravar as ocorrências num ficheiro Excel.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Registo detalhado.")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(levelname)s] %(message)s",
    )

    if not args.saft.exists():
        print(f"[ERRO] Ficheiro não encontrado: {args.saft}")
        return 2

    result = validate_file(args.saft)
    summary = summarize(result)

    if args.json:
        print(json.dumps(summary.to_dict(), ensure_ascii=False, indent=2))
    else:
        print(summary.summary)
        for finding in result.findings:
            location = f" [{finding.location}]" if finding.location else ""
            print(f"  {finding.code} ({finding.severity.value}){location}: {finding.message}")
        for recommendation in summary.recommendations:
            print(f"- {recommendation}")

    if args.excel_path:
        destination = export_report(result.findings, destination=args.excel_path)
        LOGGER.info("Ocorrências gravadas em %s", destination)

    return 0 if result.is_valid else 1


if __name__ == "__main__":  # pragma: no cover - execução directa
    raise SystemExit(main())
