import json
from datetime import date

from engine import LedgerRow, ScanStats
from layouts import PAYMENTS, RECEIPTS
from report import ledger_frame, sentinel_counts, write_ledger, write_summary


def _receipt_row(**overrides):
    values = dict(
        date=date(2024, 5, 10),
        debit_description="7 - CLIENTE ALFA",
        debit_code="400",
        credit_description="BANCO SICREDI",
        credit_code="110",
        memo="MENSALIDADE\r\nMAIO\tCONFORME DOCUMENTO 991",
        amounts={"principal": 100.0, "interest": None, "discount": None,
                 "bank_expense": None, "notary_expense": None, "net": 99.5},
    )
    values.update(overrides)
    return LedgerRow(**values)


def test_empty_output_still_has_header():
    content = write_ledger([], PAYMENTS).decode("utf-8")
    assert content.splitlines() == [";".join(PAYMENTS.output.headers)]


def test_receipts_output_is_cp1252_and_sanitized():
    content = write_ledger([_receipt_row()], RECEIPTS)
    assert "Descrição Credito".encode("cp1252") in content

    lines = content.decode("cp1252").splitlines()
    assert len(lines) == 2
    cells = lines[1].split(";")
    assert cells == [
        "10/05/2024", "BANCO SICREDI", "110", "7 - CLIENTE ALFA", "400",
        "MENSALIDADEMAIOCONFORME DOCUMENTO 991",
        "100,00", "0,00", "0,00", "0,00", "0,00", "99,50",
    ]


def test_payments_blank_optional_amounts_and_missing_date():
    row = LedgerRow(
        date=None,
        debit_description="123 - FORNECEDOR ABC",
        debit_code="200",
        credit_description="",
        credit_code="999999",
        memo="123 - FORNECEDOR ABC NF 4521",
        amounts={"value": 150.0, "original": None, "paid": 150.0, "interest": None,
                 "fine": None, "discount": -5.0, "expenses": None,
                 "fx_variation": None, "net_paid": None},
    )
    frame = ledger_frame([row], PAYMENTS)
    record = frame.iloc[0].tolist()
    assert record[0] == ""
    assert record[5] == "150,00"
    assert record[7] == ""
    assert record[11] == "-5,00"


def test_sentinel_counts():
    rows = [_receipt_row(), _receipt_row(debit_code="999999", credit_code="999999"), _receipt_row(credit_code="999999")]
    assert sentinel_counts(rows, "999999") == {"debit": 1, "credit": 2}


def test_write_summary(tmp_path):
    path = write_summary(str(tmp_path / "out"), {"ledger_rows": 2, "scan": ScanStats().to_dict()})
    with open(path) as f:
        data = json.load(f)
    assert data["ledger_rows"] == 2
    assert data["scan"]["skipped_outside_section"] == 0
