import glob
import os
import subprocess
import sys

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

EXPORT = "\n".join([
    "Data de pagamento: 10/05/2024",
    "Histórico:",
    ";123 - FORNECEDOR ABC;;4521;;;;;150,00" + ";" * 11 + "BANCO DO BRASIL",
    ";124 - QWERTY ZXCV;;77;;;;;10,00" + ";" * 11 + "BANCO DO BRASIL",
    "Total do histórico:;160,00",
]).encode("latin-1")

CHART = "100;1.1.01;BANCO DO BRASIL\n200;2.1.01;FORNECEDOR ABC\n".encode("latin-1")


def _run(*args):
    cmd = [sys.executable, os.path.join("src", "run_convert.py"), *args]
    return subprocess.run(cmd, capture_output=True, text=True, cwd=ROOT)


def test_run_convert_smoke(tmp_path):
    export = tmp_path / "pagamentos.csv"
    chart = tmp_path / "contas.csv"
    export.write_bytes(EXPORT)
    chart.write_bytes(CHART)
    out_dir = tmp_path / "outputs"

    result = _run(str(export), str(chart), "--layout", "payments", "--out-dir", str(out_dir),
                  "--summary", "--suggestions", "--debit-prefixes", "2.1")
    assert result.returncode == 0, result.stderr
    assert "Wrote 2 ledger rows" in result.stdout
    assert len(glob.glob(str(out_dir / "Pagamentos_*.csv"))) == 1
    assert os.path.exists(out_dir / "summary.json")
    assert os.path.exists(out_dir / "suggestions.csv")


def test_run_convert_reports_unreadable_export(tmp_path):
    export = tmp_path / "empty.csv"
    chart = tmp_path / "contas.csv"
    export.write_bytes(b"")
    chart.write_bytes(CHART)

    result = _run(str(export), str(chart), "--out-dir", str(tmp_path / "outputs"))
    assert result.returncode == 1
    assert "error:" in result.stderr


def test_run_convert_reports_malformed_rules(tmp_path):
    export = tmp_path / "pagamentos.csv"
    chart = tmp_path / "contas.csv"
    rules = tmp_path / "rules.json"
    export.write_bytes(EXPORT)
    chart.write_bytes(CHART)
    rules.write_text("{not json")

    result = _run(str(export), str(chart), "--rules", str(rules), "--out-dir", str(tmp_path / "outputs"))
    assert result.returncode == 1
    assert "error:" in result.stderr
    assert "Traceback" not in result.stderr
