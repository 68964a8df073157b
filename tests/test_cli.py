from __future__ import annotations

import json

import pytest
from openpyxl import load_workbook

from saft_samples import VALID_SAFT, mutate
from saftpt import cli
from saftpt.commands.report import default_report_destination


def _write(tmp_path, content: str, name: str = "saft.xml"):
    path = tmp_path / name
    path.write_text(content, encoding="utf-8")
    return path


def test_available_commands() -> None:
    assert [spec.name for spec in cli.available_commands()] == ["validate", "report"]


def test_validate_valid_file(tmp_path, capsys) -> None:
    path = _write(tmp_path, VALID_SAFT)

    assert cli.main(["validate", str(path)]) == 0

    output = capsys.readouterr().out
    assert "SAF-T válido." in output
    assert "O ficheiro pode ser submetido à AT para validação oficial" in output


def test_validate_invalid_file_prints_findings(tmp_path, capsys) -> None:
    path = _write(tmp_path, mutate("<TaxRegistrationNumber>509123457", "<TaxRegistrationNumber>509123456"))

    assert cli.main(["validate", str(path)]) == 1

    output = capsys.readouterr().out
    assert "SAF-T inválido." in output
    assert "HDR004 (error) [Header/TaxRegistrationNumber]" in output


def test_validate_json_output(tmp_path, capsys) -> None:
    path = _write(tmp_path, mutate("<GrossTotal>123.00", "<GrossTotal>123.02"))

    assert cli.main(["validate", str(path), "--json"]) == 0

    payload = json.loads(capsys.readouterr().out)
    assert payload["status"] == "warnings"
    assert payload["details"]["warnings"][0]["code"] == "SD025"
    assert payload["details"]["stats"]["invoices"] == 2


def test_validate_excel_output(tmp_path, capsys) -> None:
    path = _write(tmp_path, mutate("<Period>3", "<Period>13"))
    excel = tmp_path / "ocorrencias.xlsx"

    assert cli.main(["validate", str(path), "--excel", str(excel)]) == 1

    rows = list(load_workbook(excel).active.iter_rows(values_only=True))
    assert rows[0] == ("code", "severity", "location", "message")
    assert rows[1][0] == "SD027"


def test_validate_missing_file(tmp_path, capsys) -> None:
    assert cli.main(["validate", str(tmp_path / "nao-existe.xml")]) == 2
    assert "[ERRO] Ficheiro não encontrado" in capsys.readouterr().out


def test_validate_garbage_file(tmp_path, capsys) -> None:
    path = _write(tmp_path, "isto não é xml")

    assert cli.main(["validate", str(path)]) == 1
    assert "XML003" in capsys.readouterr().out


def test_report_default_destination(tmp_path, capsys) -> None:
    path = _write(tmp_path, VALID_SAFT, name="marco.xml")

    assert cli.main(["report", str(path)]) == 0

    destination = default_report_destination(path)
    assert destination == tmp_path / "marco_totais.xlsx"
    workbook = load_workbook(destination)
    assert workbook.sheetnames == ["Resumo", "Documentos"]
    assert str(destination) in capsys.readouterr().out


def test_report_explicit_output(tmp_path) -> None:
    path = _write(tmp_path, VALID_SAFT)
    output = tmp_path / "saida" / "totais.xlsx"

    assert cli.main(["report", str(path), "--output", str(output)]) == 0
    assert output.exists()


def test_report_rejects_unreadable_file(tmp_path, capsys) -> None:
    path = _write(tmp_path, "isto não é xml")

    assert cli.main(["report", str(path)]) == 1
    assert "[ERRO]" in capsys.readouterr().out


def test_report_missing_file(tmp_path) -> None:
    assert cli.main(["report", str(tmp_path / "nao-existe.xml")]) == 2


def test_unknown_command_exits_with_usage_error(capsys) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["desconhecido"])

    assert excinfo.value.code == 2


def test_run_rejects_unknown_command() -> None:
    with pytest.raises(ValueError):
        cli.run("desconhecido", [])


def test_help_returns_zero(capsys) -> None:
    assert cli.run("validate", ["--help"]) == 0
    assert "saftpt validate" in capsys.readouterr().out
