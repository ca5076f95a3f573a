from datetime import date

import pytest

from accounts import ChartIndex
from config import ConvertConfig
from engine import ColumnHints, LedgerEngine
from layouts import PAYMENTS, RECEIPTS
from match import AccountMatcher

CHART = [
    ["100", "1.1.01", "BANCO DO BRASIL"],
    ["110", "1.1.03", "BANCO SICREDI"],
    ["200", "2.1.01", "FORNECEDOR ABC"],
    ["400", "1.1.02", "CLIENTE ALFA"],
]


def payment_line(description, value, invoice="", bank="BANCO DO BRASIL"):
    row = [""] * 20
    row[1] = description
    row[3] = invoice
    row[8] = value
    row[19] = bank
    return row


def receipt_line(doc, document_no, history, principal, net):
    row = ["0,00"] * 18
    row[0] = doc
    row[1] = row[2] = row[3] = ""
    row[4] = document_no
    row[5] = row[6] = row[7] = row[8] = ""
    row[9] = history
    row[10] = row[11] = ""
    row[12] = principal
    row[17] = net
    return row


def make_engine(layout, cfg=None, **kwargs):
    matcher = AccountMatcher(ChartIndex.from_rows(CHART))
    return LedgerEngine(matcher, layout, cfg, **kwargs)


def test_payment_line_after_date_header_and_historico():
    rows = [
        ["Data de pagamento: 10/05/2024"],
        ["Histórico:"],
        payment_line("123 - FORNECEDOR ABC", "150,00", invoice="4521"),
    ]
    result = make_engine(PAYMENTS).scan(rows)

    assert len(result.rows) == 1
    row = result.rows[0]
    assert row.date == date(2024, 5, 10)
    assert row.debit_description == "123 - FORNECEDOR ABC"
    assert row.debit_code == "200"
    assert row.credit_description == "BANCO DO BRASIL"
    assert row.credit_code == "100"
    assert row.memo == "123 - FORNECEDOR ABC NF 4521"
    assert row.amounts["value"] == 150.0
    assert row.amounts["paid"] == 150.0
    assert row.amounts["original"] is None


def test_payment_lines_outside_historico_are_skipped():
    rows = [
        ["Data de pagamento: 10/05/2024"],
        payment_line("123 - FORNECEDOR ABC", "150,00"),
        ["Histórico:"],
        payment_line("124 - FORNECEDOR ABC", "10,00"),
        ["Total da data:", "160,00"],
        payment_line("125 - FORNECEDOR ABC", "20,00"),
    ]
    result = make_engine(PAYMENTS).scan(rows)
    assert [r.amounts["value"] for r in result.rows] == [10.0]
    assert result.stats.skipped_outside_section == 2


def test_payment_lines_need_a_block_date():
    rows = [["Histórico:"], payment_line("123 - FORNECEDOR ABC", "150,00")]
    result = make_engine(PAYMENTS).scan(rows)
    assert result.rows == []
    assert result.stats.skipped_without_date == 1


def test_payment_lines_need_a_value():
    rows = [
        ["Data de pagamento: 10/05/2024"],
        ["Histórico:"],
        payment_line("123 - FORNECEDOR ABC", "0,00"),
        payment_line("124 - FORNECEDOR ABC", ""),
    ]
    result = make_engine(PAYMENTS).scan(rows)
    assert result.rows == []
    assert result.stats.skipped_without_value == 2


def test_payment_filters_apply_per_side():
    rows = [
        ["Data de pagamento: 10/05/2024"],
        ["Histórico:"],
        payment_line("123 - FORNECEDOR ABC", "150,00"),
    ]
    result = make_engine(PAYMENTS, debit_prefixes=["9"], credit_prefixes=["1.1"]).scan(rows)
    row = result.rows[0]
    assert row.debit_code == "999999"
    assert row.credit_code == "100"


def test_block_date_persists_until_replaced():
    rows = [
        ["Data de pagamento:", "", "45000"],
        ["Histórico:"],
        payment_line("1 - FORNECEDOR ABC", "1,00"),
        ["Data de pagamento: 11/05/2024"],
        payment_line("2 - FORNECEDOR ABC", "2,00"),
        payment_line("3 - FORNECEDOR ABC", "3,00"),
    ]
    result = make_engine(PAYMENTS).scan(rows)
    dates = [r.date for r in result.rows]
    assert dates[0].year in (2023, 2024)
    assert dates[1:] == [date(2024, 5, 11), date(2024, 5, 11)]


def test_invoice_memo_falls_back_to_document_number():
    row = payment_line("123 - FORNECEDOR ABC", "150,00")
    row[5] = "NF-000987"
    rows = [["Data de pagamento: 10/05/2024"], ["Histórico:"], row]
    result = make_engine(PAYMENTS).scan(rows)
    assert result.rows[0].memo == "123 - FORNECEDOR ABC NF NF-000987"


def test_portador_governs_following_receipt_lines():
    rows = [
        ["10/05/2024"],
        ["Portador: 7 - CLIENTE ALFA"],
        receipt_line("55 - BANCO SICREDI", "NF 991", "MENSALIDADE MAIO", "100,00", "100,00"),
        receipt_line("56 - BANCO SICREDI", "NF 992", "MENSALIDADE JUNHO", "200,00", "199,00"),
    ]
    result = make_engine(RECEIPTS).scan(rows)

    assert len(result.rows) == 2
    first, second = result.rows
    assert first.debit_description == second.debit_description == "7 - CLIENTE ALFA"
    assert first.debit_code == second.debit_code == "400"
    assert first.credit_description == "BANCO SICREDI"
    assert first.credit_code == "110"
    assert first.date == second.date == date(2024, 5, 10)
    assert first.memo == "MENSALIDADE MAIO CONFORME DOCUMENTO NF 991 DE BANCO SICREDI"
    assert second.amounts["principal"] == 200.0
    assert second.amounts["net"] == 199.0
    assert second.amounts["interest"] == 0.0


def test_empty_portador_clears_counterparty():
    rows = [
        ["10/05/2024"],
        ["Portador: 7 - CLIENTE ALFA"],
        ["Portador:"],
        receipt_line("55 - BANCO SICREDI", "NF 991", "X", "1,00", "1,00"),
    ]
    result = make_engine(RECEIPTS).scan(rows)
    assert result.rows[0].debit_description == ""
    assert result.rows[0].debit_code == "999999"


def test_receipt_counterparty_lookback():
    rows = [
        ["10/05/2024"],
        ["Cliente:", "7-CLIENTE ALFA"],
        receipt_line("55 - BANCO SICREDI", "NF 991", "X", "1,00", "1,00"),
        receipt_line("56 - BANCO SICREDI", "NF 992", "Y", "2,00", "2,00"),
    ]
    result = make_engine(RECEIPTS).scan(rows)
    assert [r.debit_code for r in result.rows] == ["400", "400"]
    assert result.stats.counterparties_from_lookback == 1


def test_receipt_date_lookback_is_bounded():
    date_row = ["Cliente", "Vencimento", "02/06/2024", "a", "b", "c", "d"]
    line = receipt_line("55 - BANCO SICREDI", "NF 991", "X", "1,00", "1,00")

    result = make_engine(RECEIPTS).scan([date_row, ["x"], line])
    assert result.rows[0].date == date(2024, 6, 2)
    assert result.stats.dates_from_lookback == 1

    short = ConvertConfig(date_lookback_rows=2)
    result = make_engine(RECEIPTS, short).scan([date_row, ["x"], ["y"], line])
    assert result.rows[0].date is None


def test_learned_column_hints_drive_extraction():
    rows = [
        ["10/05/2024"],
        ["Lançamento", "Documento", "Histórico", "Valor Principal", "Juros"],
        ["55 - BANCO SICREDI", "NF 991", "MENSALIDADE", "250,00", "5,00"],
    ]
    result = make_engine(RECEIPTS).scan(rows)
    row = result.rows[0]
    assert row.memo == "MENSALIDADE CONFORME DOCUMENTO NF 991 DE BANCO SICREDI"
    assert row.amounts["principal"] == 250.0
    assert row.amounts["interest"] == 5.0
    assert row.amounts["discount"] is None
    assert result.context.hints.document == 1


def test_column_hints_first_write_wins():
    hints = ColumnHints().learn({"document": 2}).learn({"document": 5, "memo": 3, "bogus": 1})
    assert hints.document == 2
    assert hints.memo == 3
    assert hints.as_dict() == {"document": 2, "memo": 3}


@pytest.mark.parametrize("layout", [PAYMENTS, RECEIPTS])
def test_noise_only_input(layout):
    result = make_engine(layout).scan([["foo"], [], ["bar", "baz"]])
    assert result.rows == []
    assert result.stats.rows == 3


def test_wide_date_row_updates_the_block_date():
    rows = [
        ["Data de pagamento: 10/05/2024"],
        ["Histórico:"],
        payment_line("1 - FORNECEDOR ABC", "1,00"),
        ["Data de pagamento:", "11/05/2024", "Fornecedor", "Documento", "Valor", "Juros", "Multa"],
        payment_line("2 - FORNECEDOR ABC", "2,00"),
    ]
    result = make_engine(PAYMENTS).scan(rows)
    assert [r.date for r in result.rows] == [date(2024, 5, 10), date(2024, 5, 11)]
    assert result.stats.block_headers == 2


def test_date_row_holding_a_transaction_emits_it_under_the_new_date():
    line = payment_line("123 - FORNECEDOR ABC", "150,00", invoice="4521")
    line[0] = "Data de pagamento: 11/05/2024"
    rows = [["Data de pagamento: 10/05/2024"], ["Histórico:"], line]
    result = make_engine(PAYMENTS).scan(rows)
    assert len(result.rows) == 1
    assert result.rows[0].date == date(2024, 5, 11)
    assert result.rows[0].debit_code == "200"
    assert result.stats.block_headers == 2
    assert result.stats.emitted == 1


def test_day_total_row_does_not_replace_receipt_date():
    rows = [
        ["10/05/2024"],
        ["Portador: CLIENTE ALFA"],
        ["Total da data:", "", "41250.5"],
        receipt_line("55 - BANCO SICREDI", "NF 991", "X", "1,00", "1,00"),
    ]
    result = make_engine(RECEIPTS).scan(rows)
    assert result.rows[0].date == date(2024, 5, 10)
    assert result.rows[0].debit_code == "400"


def test_payments_ignore_portador_rows():
    rows = [
        ["Data de pagamento: 10/05/2024"],
        ["Histórico:"],
        ["Portador: QWERTY ZXCV"],
        payment_line("123 - FORNECEDOR ABC", "150,00"),
    ]
    engine = make_engine(PAYMENTS)
    result = engine.scan(rows)
    assert result.rows[0].debit_code == "200"
    assert result.context.counterparty_description == ""
    assert result.stats.counterparty_markers == 1
    assert not any("QWERTY" in key[0] for key in engine.matcher.misses())
    assert sum(engine.matcher.breakdown().values()) == 2
