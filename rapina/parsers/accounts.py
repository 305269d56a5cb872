"""Bookkeeping account codes and their lookup table."""

from __future__ import annotations

from enum import IntEnum
from typing import NamedTuple

from rapina.parsers.transform import fnv32a


class Code(IntEnum):
    """Bookkeeping codes for the accounts the reports use."""

    UNDEF = 0
    SPACE = 1
    # Balance sheet
    CAIXA = 2
    APLIC_FINANCEIRAS = 3
    ESTOQUE = 4
    EQUITY = 5
    CONTAS_A_RECEB_CIRC = 6
    CONTAS_A_RECEB_NCIRC = 7
    ATIVO_CIRC = 8
    ATIVO_NCIRC = 9
    ATIVO_TOTAL = 10
    PASSIVO_CIRC = 11
    PASSIVO_NCIRC = 12
    PASSIVO_TOTAL = 13
    DIVIDA_CIRC = 14
    DIVIDA_NCIRC = 15
    DIVIDENDOS_JCP = 16
    DIVIDENDOS_MIN = 17
    # Income statement
    VENDAS = 18
    CUSTO_VENDAS = 19
    DESPESAS_OP = 20
    EBIT = 21
    RESUL_FINANC = 22
    RESUL_OP_DESCONT = 23
    LUC_LIQ = 24
    # Cash flow
    FCO = 25
    FCI = 26
    FCF = 27
    # Value added statement
    DEPREC = 28
    JUROS_CAP_PROP = 29
    DIVIDENDOS = 30
    # Values from the reference form
    SHARES = 31
    FREE_FLOAT = 32
    # Financial ratios
    ESTOQUE_MEDIO = 33
    EQUITY_AVG = 34
    # Financial scale
    ESCALA = 35
    # Stock quote from the last day of the year
    QUOTE = 36


class _Account(NamedTuple):
    cd_account: str
    ds_account: str
    code: Code


_ACCOUNTS = (
    # BPA
    _Account("1", "Ativo Total", Code.ATIVO_TOTAL),
    _Account("1.01", "Ativo Circulante", Code.ATIVO_CIRC),
    _Account("1.02", "Ativo Não Circulante", Code.ATIVO_NCIRC),
    _Account("1.01.01", "Caixa e Equivalentes de Caixa", Code.CAIXA),
    _Account("1.01.02", "Aplicações Financeiras", Code.APLIC_FINANCEIRAS),
    _Account("1.01.04", "Estoques", Code.ESTOQUE),
    _Account("1.01.03", "Contas a Receber", Code.CONTAS_A_RECEB_CIRC),
    _Account("1.02.01.03", "Contas a Receber", Code.CONTAS_A_RECEB_NCIRC),
    _Account("1.02.01.04", "Contas a Receber", Code.CONTAS_A_RECEB_NCIRC),
    # BPP
    _Account("2", "Passivo Total", Code.PASSIVO_TOTAL),
    _Account("2.01", "Passivo Circulante", Code.PASSIVO_CIRC),
    _Account("2.02", "Passivo Não Circulante", Code.PASSIVO_NCIRC),
    _Account("2.*", "Patrimônio Líquido Consolidado", Code.EQUITY),
    _Account("2.01.04", "Empréstimos e Financiamentos", Code.DIVIDA_CIRC),
    _Account("2.02.01", "Empréstimos e Financiamentos", Code.DIVIDA_NCIRC),
    _Account("2.01.05.02.01", "Dividendos e JCP a Pagar", Code.DIVIDENDOS_JCP),
    _Account("2.01.05.02.02", "Dividendo Mínimo Obrigatório a Pagar", Code.DIVIDENDOS_MIN),
    # DRE
    _Account("3.01", "", Code.VENDAS),
    _Account("3.02", "", Code.CUSTO_VENDAS),
    _Account("3.04", "", Code.DESPESAS_OP),
    _Account("3.*", "Resultado Antes do Resultado Financeiro e dos Tributos", Code.EBIT),
    _Account("3.06", "Resultado Financeiro", Code.RESUL_FINANC),
    _Account("3.07", "Resultado Financeiro", Code.RESUL_FINANC),
    _Account("3.08", "Resultado Financeiro", Code.RESUL_FINANC),
    _Account("3.10", "Resultado Líquido de Operações Descontinuadas", Code.RESUL_OP_DESCONT),
    _Account("3.11", "Resultado Líquido de Operações Descontinuadas", Code.RESUL_OP_DESCONT),
    _Account("3.12", "Resultado Líquido de Operações Descontinuadas", Code.RESUL_OP_DESCONT),
    _Account("3.*", "Lucro/Prejuízo Consolidado do Período", Code.LUC_LIQ),
    _Account("3.*", "Lucro/Prejuízo do Período", Code.LUC_LIQ),
    # DFC
    _Account("6.01", "", Code.FCO),
    _Account("6.02", "", Code.FCI),
    _Account("6.03", "", Code.FCF),
    # DVA
    _Account("7.*", "Depreciação, Amortização e Exaustão", Code.DEPREC),
    _Account("7.*", "Juros sobre o Capital Próprio", Code.JUROS_CAP_PROP),
    _Account("7.*", "Dividendos", Code.DIVIDENDOS),
)


def acct_code(cd_account: str, ds_account: str) -> int:
    """Return the bookkeeping code for an account, or a hash if it is not listed."""
    ds_account = ds_account.lower()
    for acc in _ACCOUNTS:
        descr = acc.ds_account.lower()
        prefix = acc.cd_account[:-1] if len(acc.cd_account) > 1 and acc.cd_account.endswith("*") else ""
        if prefix and cd_account.startswith(prefix):
            if not descr or descr == ds_account:
                return acc.code
        elif not acc.cd_account or acc.cd_account == cd_account:
            if not descr or descr == ds_account:
                return acc.code
    return fnv32a(cd_account + ds_account)