"""Built-in layout profiles for the two export shapes the converter reads.

Every column index here is heuristic data tuned to the sample exports, not a
contract: ``rules.load_layout`` can override any of it from JSON.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

MONEY = "money"
TEXT = "text"

HINT_CATEGORIES = (
    "document",
    "memo",
    "principal",
    "interest",
    "discount",
    "bank_expense",
    "notary_expense",
    "net",
    "bank",
)


@dataclass(frozen=True)
class FieldRule:
    name: str
    kind: str = MONEY
    hint: Optional[str] = None            # learned column category tried first
    offsets: Tuple[int, ...] = ()         # relative to the document column
    columns: Tuple[int, ...] = ()         # fixed fallback columns
    skip_zero: bool = False
    default_zero: bool = True             # missing money renders as 0,00 instead of blank


@dataclass(frozen=True)
class OutputSpec:
    # (header, source) where source is a LedgerRow attribute or a field name
    columns: Tuple[Tuple[str, str], ...]
    encoding: str = "cp1252"
    filename_prefix: str = "Ledger"

    @property
    def headers(self) -> Tuple[str, ...]:
        return tuple(h for h, _ in self.columns)


@dataclass(frozen=True)
class LayoutRules:
    name: str
    date_labels: Tuple[str, ...]
    date_prefix_labels: Tuple[str, ...] = ()   # must open the cell
    date_offsets: Tuple[int, ...] = (1, 2)
    date_columns: Tuple[int, ...] = ()
    require_section: bool = False
    require_block_date: bool = False
    learn_hints: bool = False
    lone_date_rows: bool = False
    debit_source: str = "document"        # "document" | "counterparty"
    credit_source: str = "bank_columns"   # "bank_columns" | "document_or_bank"
    memo_style: str = "invoice"           # "invoice" | "document"
    required_field: Optional[str] = None
    bank_hints: Tuple[str, ...] = ()
    bank_offsets: Tuple[int, ...] = ()
    bank_columns: Tuple[int, ...] = ()
    scan_all_for_bank: bool = False
    fields: Tuple[FieldRule, ...] = ()
    output: OutputSpec = field(default_factory=lambda: OutputSpec(columns=()))

    def field_rule(self, name: str) -> Optional[FieldRule]:
        for rule in self.fields:
            if rule.name == name:
                return rule
        return None


PAYMENTS = LayoutRules(
    name="payments",
    date_labels=("data de pag", "data do pag", "data pagamento"),
    date_offsets=(1, 2),
    date_columns=(9,),
    require_section=True,
    require_block_date=True,
    debit_source="document",
    credit_source="bank_columns",
    memo_style="invoice",
    required_field="value",
    bank_hints=("SICRED", "BANCO", "BRADESCO", "ITAU", "SANTAND", "CAIXA", "BB",
                "CAIXA GERAL", "REBATE", "BAIXA DEVOL"),
    bank_columns=(19, 18, 20, 21),
    fields=(
        FieldRule("description", kind=TEXT, offsets=(0,), columns=(1,)),
        FieldRule("invoice", kind=TEXT, offsets=(2,), columns=(3,)),
        FieldRule("value", columns=(8, 10, 11, 12, 9), skip_zero=True),
        FieldRule("original", columns=(7,), default_zero=False),
        FieldRule("paid", columns=(8,), default_zero=False),
        FieldRule("interest", columns=(9,), default_zero=False),
        FieldRule("fine", columns=(11,), default_zero=False),
        FieldRule("discount", columns=(12,), default_zero=False),
        FieldRule("expenses", columns=(13,), default_zero=False),
        FieldRule("fx_variation", columns=(15,), default_zero=False),
        FieldRule("net_paid", columns=(17,), default_zero=False),
    ),
    output=OutputSpec(
        columns=(
            ("Data", "date"),
            ("Débito", "debit_code"),
            ("Descrição Débito", "debit_description"),
            ("Crédito", "credit_code"),
            ("Descrição Crédito", "credit_description"),
            ("Valor", "value"),
            ("histórico", "memo"),
            ("Valor Original", "original"),
            ("Valor Pago", "paid"),
            ("Valor Juros", "interest"),
            ("Valor Multa", "fine"),
            ("Valor Desconto", "discount"),
            ("Valor Despesas", "expenses"),
            ("Var Cam", "fx_variation"),
            ("Valor Liq Pago Banco", "net_paid"),
        ),
        encoding="utf-8",
        filename_prefix="Pagamentos",
    ),
)

RECEIPTS = LayoutRules(
    name="receipts",
    date_labels=("data de receb", "data do receb", "data receb", "dt receb",
                 "data baixa", "data da baixa", "data de baixa",
                 "data de pagamento", "data do pagamento"),
    date_prefix_labels=("data:",),
    date_offsets=(1, 2, 3),
    date_columns=(2,),
    learn_hints=True,
    lone_date_rows=True,
    debit_source="counterparty",
    credit_source="document_or_bank",
    memo_style="document",
    bank_hints=("SICRED", "SICOOB", "BANCO", "BRADESCO", "ITAU", "ITAÚ", "SANTAND",
                "CAIXA", "CEF", "BB", "COOP", "COOPER", "FINANC", "REBATE", "BAIXA DEVOL"),
    bank_offsets=(6, 5, 7),
    bank_columns=(18, 19, 20, 21, 22, 17, 16, 15),
    scan_all_for_bank=True,
    fields=(
        FieldRule("document", kind=TEXT, hint="document", offsets=(4, 5, 3), columns=(4, 5)),
        FieldRule("history", kind=TEXT, hint="memo", offsets=(9, 8, 10, 7), columns=(9, 8, 10)),
        FieldRule("principal", hint="principal", offsets=(12, 11, 13, 10), columns=(12, 11, 13)),
        FieldRule("interest", hint="interest", offsets=(13, 12, 14), columns=(13, 12, 14)),
        FieldRule("discount", hint="discount", offsets=(14, 13, 15), columns=(14, 13, 15)),
        FieldRule("bank_expense", hint="bank_expense", offsets=(15, 14, 16), columns=(15, 14, 16)),
        FieldRule("notary_expense", hint="notary_expense", offsets=(16, 15, 17), columns=(16, 15, 17)),
        FieldRule("net", hint="net", offsets=(17, 16, 18), columns=(17, 16, 18, 19)),
    ),
    output=OutputSpec(
        columns=(
            ("Data", "date"),
            ("Descrição Credito", "credit_description"),
            ("conta crédito", "credit_code"),
            ("Descrição Débito", "debit_description"),
            ("conta Debito", "debit_code"),
            ("Histórico", "memo"),
            ("valor Principal", "principal"),
            ("Juros", "interest"),
            ("Desconto", "discount"),
            ("Desp Banco", "bank_expense"),
            ("Desp Cartório", "notary_expense"),
            ("VlLiq Pago", "net"),
        ),
        encoding="cp1252",
        filename_prefix="Recebimentos",
    ),
)

LAYOUTS: Dict[str, LayoutRules] = {
    PAYMENTS.name: PAYMENTS,
    RECEIPTS.name: RECEIPTS,
}
